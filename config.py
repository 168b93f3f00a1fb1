"""
Configuration loaded from environment variables (and an optional .env file).
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

# dialect+driver used for each DB_DRIVER value
DRIVERS = {
    "sqlite": "sqlite",
    "mysql": "mysql+pymysql",
    "postgresql": "postgresql+psycopg2",
}


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: Optional[str] = None  # full override, e.g. sqlite:///./videos.db
    db_driver: str = "sqlite"
    db_host: str = "localhost"
    db_port: Optional[int] = None
    db_user: str = ""
    db_password: str = ""
    db_name: str = "videos"

    # Fetcher
    trending_url: str = "https://www.youtube.com/feed/trending"
    trending_selector: str = "a#video-title, a.video-title"
    user_agent: str = "TrendingVideoBot/0.1 (+https://example.com/bot)"
    request_timeout: float = 8.0  # seconds
    max_retries: int = 3
    request_delay: float = 1.0  # base backoff between retries

    # Background fetch-and-sync, seconds between runs (0 = off)
    poll_interval: int = 0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def sqlalchemy_url(self) -> str:
        """SQLAlchemy URL built from DATABASE_URL or the DB_* parts."""
        if self.database_url:
            return self.database_url
        if self.db_driver == "sqlite":
            return f"sqlite:///./{self.db_name}.db"

        drivername = DRIVERS.get(self.db_driver)
        if drivername is None:
            raise ValueError(f"Unsupported DB_DRIVER: {self.db_driver}")

        url = URL.create(
            drivername,
            username=self.db_user or None,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
