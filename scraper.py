import logging
import time
from dataclasses import dataclass
from urllib.parse import urljoin

import feedparser
import requests
from bs4 import BeautifulSoup

from config import get_settings
from errors import FetchError

logger = logging.getLogger(__name__)

FEED_CONTENT_TYPES = ("rss+xml", "atom+xml", "application/xml", "text/xml")


@dataclass(frozen=True)
class RawEntry:
    """A candidate video scraped from the listing page."""
    title: str
    url: str


def fetch_html(url, timeout=None, max_retries=None, delay=None):
    """GET the page, retrying with exponential backoff. Returns the response."""
    settings = get_settings()
    timeout = settings.request_timeout if timeout is None else timeout
    max_retries = max(1, settings.max_retries if max_retries is None else max_retries)
    delay = settings.request_delay if delay is None else delay
    headers = {"User-Agent": settings.user_agent}

    for attempt in range(max_retries):
        try:
            r = requests.get(url, headers=headers, timeout=timeout)
            r.raise_for_status()
            return r
        except requests.exceptions.RequestException as e:
            response = getattr(e, "response", None)
            if response is not None and 400 <= response.status_code < 500:
                # client errors will not go away on retry
                raise FetchError(f"could not fetch {url}: {e}") from e
            logger.warning(f"Fetch failed (attempt {attempt + 1}/{max_retries}): {url}, error: {e}")
            if attempt == max_retries - 1:
                raise FetchError(f"could not fetch {url}: {e}") from e
            time.sleep(delay * (2 ** attempt))


def is_feed(content_type, body):
    content_type = (content_type or "").lower()
    if "xhtml" in content_type:
        return False
    if any(t in content_type for t in FEED_CONTENT_TYPES):
        return True
    # XHTML pages may carry an XML prolog too
    head = body.lstrip()[:2048].lower()
    return head.startswith("<?xml") and "<html" not in head


def parse_listing(html, base_url, selector):
    """Walk the elements matched by `selector` and pull title + href from each."""
    soup = BeautifulSoup(html or "", "html.parser")
    if soup.find() is None:
        raise FetchError(f"{base_url} did not return an HTML document")

    entries = []
    for el in soup.select(selector):
        title = (el.get("title") or el.get_text(" ", strip=True) or "").strip()
        href = (el.get("href") or "").strip()
        if not title or not href:
            logger.debug(f"Skipping incomplete element: {el!s:.80}")
            continue
        entries.append(RawEntry(title=title, url=urljoin(base_url, href)))
    return entries


def parse_feed(text, base_url=""):
    d = feedparser.parse(text)
    if d.bozo and not d.entries:
        raise FetchError(f"malformed feed: {d.get('bozo_exception')}")
    entries = []
    for e in d.entries:
        title = (e.get("title") or "").strip()
        link = (e.get("link") or "").strip()
        if not title or not link:
            logger.debug(f"Skipping incomplete feed entry: {e.get('id', '?')}")
            continue
        entries.append(RawEntry(title=title, url=urljoin(base_url, link)))
    return entries


def fetch_trending(source=None):
    """Fetch the listing at `source` and return its candidate entries in page order."""
    settings = get_settings()
    source = source or settings.trending_url
    r = fetch_html(source)
    body = r.text
    if is_feed(r.headers.get("Content-Type"), body):
        entries = parse_feed(body, base_url=source)
    else:
        entries = parse_listing(body, source, settings.trending_selector)
    logger.info(f"Fetched {len(entries)} candidate(s) from {source}")
    return entries
