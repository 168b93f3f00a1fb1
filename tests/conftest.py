import pytest

from db import VideoStore


@pytest.fixture
def store(tmp_path):
    s = VideoStore(f"sqlite:///{tmp_path / 'videos.db'}")
    s.init_db()
    yield s
    s.dispose()


@pytest.fixture
def dead_store(tmp_path):
    # parent directory does not exist, so every connect fails
    s = VideoStore(f"sqlite:///{tmp_path / 'missing' / 'videos.db'}")
    yield s
    s.dispose()
