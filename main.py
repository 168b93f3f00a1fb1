import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from config import get_settings
from db import VideoStore
from errors import FetchError, NotFound, StorageUnavailable
from scraper import fetch_trending
from sync import synchronize

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class VideoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    url: str
    created_at: datetime
    updated_at: datetime


def fetch_and_sync(store):
    entries = fetch_trending()
    return synchronize(entries, store)


async def poll_loop(store, interval):
    loop = asyncio.get_running_loop()
    while True:
        try:
            # blocking fetch + db work runs in the executor
            summary = await loop.run_in_executor(None, fetch_and_sync, store)
            logger.info(f"Scheduled sync: {summary}")
        except (FetchError, StorageUnavailable) as e:
            logger.error(f"Scheduled sync failed: {e}")
        except Exception:
            logger.exception("Scheduled sync crashed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    store = VideoStore(settings.sqlalchemy_url)
    store.init_db()
    app.state.store = store
    logger.info(f"Storage ready ({store.engine.dialect.name})")

    poller = None
    if settings.poll_interval > 0:
        poller = asyncio.create_task(poll_loop(store, settings.poll_interval))
        logger.info(f"Polling {settings.trending_url} every {settings.poll_interval}s")

    yield

    if poller:
        poller.cancel()
        try:
            await poller
        except asyncio.CancelledError:
            pass
    store.dispose()
    logger.info("Storage closed")


app = FastAPI(title="Trending Videos", lifespan=lifespan)


def get_store(request: Request) -> VideoStore:
    return request.app.state.store


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse({"error": "not_found", "detail": str(exc)}, status_code=404)


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError):
    logger.error(f"Fetch failed: {exc}")
    return JSONResponse({"error": "fetch_error", "detail": str(exc)}, status_code=500)


@app.exception_handler(StorageUnavailable)
async def storage_error_handler(request: Request, exc: StorageUnavailable):
    logger.error(f"Storage unavailable: {exc}")
    return JSONResponse({"error": "storage_unavailable", "detail": str(exc)}, status_code=500)


@app.get("/api/fetch-trending")
async def fetch_trending_videos(store: VideoStore = Depends(get_store)):
    """Scrape the trending page and upsert what was found."""
    loop = asyncio.get_running_loop()
    summary = await loop.run_in_executor(None, fetch_and_sync, store)
    return summary.to_dict()


@app.get("/api/videos", response_model=list[VideoOut])
def list_videos(store: VideoStore = Depends(get_store)):
    return store.list_videos()


@app.get("/api/videos/{video_id}", response_model=VideoOut)
def get_video(video_id: int, store: VideoStore = Depends(get_store)):
    return store.get_video(video_id)


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
