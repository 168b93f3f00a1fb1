import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

import main
from errors import FetchError
from scraper import RawEntry
from sync import SyncSummary


@pytest.fixture
def client(store):
    main.app.dependency_overrides[main.get_store] = lambda: store
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_fetch_trending_reports_summary(client, monkeypatch):
    monkeypatch.setattr(main, "fetch_trending", lambda: [
        RawEntry("Song X", "/watch?v=1"),
        RawEntry("", "/watch?v=3"),
        RawEntry("Clip Y", "/watch?v=2"),
    ])

    r = client.get("/api/fetch-trending")

    assert r.status_code == 200
    body = r.json()
    assert body["applied"] == 2
    assert body["skipped"] == 1
    assert body["failed"] == 0
    assert body["failures"] == []


def test_fetch_trending_fetch_error_is_500(client, monkeypatch):
    def broken():
        raise FetchError("could not fetch")

    monkeypatch.setattr(main, "fetch_trending", broken)

    r = client.get("/api/fetch-trending")

    assert r.status_code == 500
    assert r.json()["error"] == "fetch_error"


def test_fetch_trending_storage_unavailable_is_500(dead_store, monkeypatch):
    monkeypatch.setattr(main, "fetch_trending", lambda: [RawEntry("A", "u1")])
    main.app.dependency_overrides[main.get_store] = lambda: dead_store
    try:
        r = TestClient(main.app).get("/api/fetch-trending")
    finally:
        main.app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json()["error"] == "storage_unavailable"


def test_list_and_get_videos(client, store):
    store.upsert_video("Song X", "https://example.com/watch?v=1")
    store.upsert_video("Clip Y", "https://example.com/watch?v=2")

    r = client.get("/api/videos")
    assert r.status_code == 200
    videos = r.json()
    assert [v["title"] for v in videos] == ["Song X", "Clip Y"]
    assert set(videos[0]) == {"id", "title", "url", "created_at", "updated_at"}

    r = client.get(f"/api/videos/{videos[1]['id']}")
    assert r.status_code == 200
    assert r.json()["url"] == "https://example.com/watch?v=2"


def test_get_missing_video_is_404(client):
    r = client.get("/api/videos/999")

    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_list_videos_storage_error_is_500(dead_store):
    main.app.dependency_overrides[main.get_store] = lambda: dead_store
    try:
        r = TestClient(main.app).get("/api/videos")
    finally:
        main.app.dependency_overrides.clear()

    assert r.status_code == 500


def test_get_huge_video_id_is_404(client):
    r = client.get(f"/api/videos/{2 ** 64}")

    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_poll_loop_survives_errors(store, monkeypatch, caplog):
    calls = []

    def flaky_sync(s):
        calls.append(s)
        if len(calls) == 1:
            raise RuntimeError("selector blew up")
        return SyncSummary(applied=1)

    monkeypatch.setattr(main, "fetch_and_sync", flaky_sync)

    async def run():
        task = asyncio.create_task(main.poll_loop(store, 0.01))
        for _ in range(200):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    with caplog.at_level(logging.INFO, logger="main"):
        asyncio.run(run())

    assert len(calls) >= 2
    assert "Scheduled sync crashed" in caplog.text
    assert "selector blew up" in caplog.text
    assert "Scheduled sync: applied=1" in caplog.text
