import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from errors import NotFound, StorageUnavailable
from models import Base, Video, utcnow

logger = logging.getLogger(__name__)

# ids are signed 64-bit integers in every supported database
MAX_ID = 2 ** 63 - 1


def _insert_for(dialect):
    if dialect == "mysql":
        from sqlalchemy.dialects.mysql import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"No upsert support for dialect {dialect!r}")
    return insert


class VideoStore:
    """
    Owns the engine and session factory for the videos table.

    Opened once at start-up, handed to request handlers, disposed at shutdown.
    """

    def __init__(self, url: str):
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._insert = _insert_for(self.engine.dialect.name)

    def init_db(self):
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def session(self):
        """Session scope: commit on success, rollback on error."""
        sess: Session = self.SessionLocal()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def ping(self):
        """Raise StorageUnavailable unless the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database unreachable: {e}")
            raise StorageUnavailable(str(e)) from e

    def upsert_video(self, title: str, url: str):
        """
        Insert a video or, if one with this url exists, refresh its title
        and updated_at. One atomic statement, so concurrent callers cannot
        lose updates or create duplicate urls.
        """
        now = utcnow()
        stmt = self._insert(Video).values(title=title, url=url, created_at=now, updated_at=now)
        if self.engine.dialect.name == "mysql":
            stmt = stmt.on_duplicate_key_update(
                title=stmt.inserted.title,
                updated_at=stmt.inserted.updated_at,
            )
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=[Video.url],
                set_={"title": stmt.excluded.title, "updated_at": stmt.excluded.updated_at},
            )
        with self.session() as sess:
            sess.execute(stmt)

    def list_videos(self):
        try:
            with self.session() as sess:
                return list(sess.scalars(select(Video).order_by(Video.id)))
        except SQLAlchemyError as e:
            raise StorageUnavailable(str(e)) from e

    def get_video(self, video_id: int) -> Video:
        if not 1 <= video_id <= MAX_ID:
            raise NotFound(video_id)
        try:
            with self.session() as sess:
                video = sess.get(Video, video_id)
        except SQLAlchemyError as e:
            raise StorageUnavailable(str(e)) from e
        if video is None:
            raise NotFound(video_id)
        return video
