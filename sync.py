"""
Reconciles scraped entries against the videos table.

Entries are applied one at a time, in input order, each in its own
transaction. A failed entry is recorded and the run carries on; only an
unreachable database aborts the whole run.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from errors import EntryPersistError
from scraper import RawEntry

logger = logging.getLogger(__name__)


@dataclass
class EntryFailure:
    entry: RawEntry
    error: EntryPersistError

    def to_dict(self) -> dict:
        return {"title": self.entry.title, "url": self.entry.url, "error": str(self.error.cause)}


@dataclass
class SyncSummary:
    """Outcome of one synchronize() run."""

    applied: int = 0
    skipped: int = 0
    failed: int = 0
    superseded: int = 0
    failures: list[EntryFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "superseded": self.superseded,
            "failures": [f.to_dict() for f in self.failures],
        }

    def __str__(self) -> str:
        return (
            f"applied={self.applied} skipped={self.skipped} "
            f"failed={self.failed} superseded={self.superseded}"
        )


def _clean(entry) -> RawEntry:
    return RawEntry(title=(entry.title or "").strip(), url=(entry.url or "").strip())


def synchronize(entries, store) -> SyncSummary:
    """
    Upsert every well-formed entry into `store`.

    Raises StorageUnavailable before touching any entry if the database
    cannot be reached. Later occurrences of a url win over earlier ones.
    """
    store.ping()

    summary = SyncSummary()
    latest: dict[str, RawEntry] = {}
    for entry in entries:
        entry = _clean(entry)
        if not entry.title or not entry.url:
            summary.skipped += 1
            continue
        if entry.url in latest:
            # move to the position of the last occurrence
            del latest[entry.url]
            summary.superseded += 1
        latest[entry.url] = entry

    for entry in latest.values():
        try:
            store.upsert_video(entry.title, entry.url)
        except SQLAlchemyError as e:
            err = EntryPersistError(entry, e)
            logger.warning(str(err))
            summary.failures.append(EntryFailure(entry=entry, error=err))
            summary.failed += 1
        else:
            summary.applied += 1

    logger.info(f"Sync finished: {summary}")
    return summary
