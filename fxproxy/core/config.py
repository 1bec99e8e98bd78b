from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic-settings rules (e.g., PORT, DEBUG,
    RATE_FEED, RATES_CACHE_TTL_SECONDS, FEED_TIMEOUT_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Currency Converter Rates API"
    debug: bool = False
    version: str = "0.1.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 4000
    cors_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Exchange rates / caching
    rates_cache_ttl_seconds: int = 3600  # 1 hour
    # Allowed: 'cbr' (Central Bank of Russia daily JSON), 'static' (fixed placeholders)
    rate_feed: str = "cbr"
    feed_latest_url: str = "https://www.cbr-xml-daily.ru/daily_json.js"
    feed_archive_url: str = (
        "https://www.cbr-xml-daily.ru/archive/{year:04d}/{month:02d}/{day:02d}/daily_json.js"
    )
    feed_timeout_seconds: float = 8.0
    feed_retries: int = 0

    # Client side cache
    client_api_base_url: str = "http://127.0.0.1:4000/api"
    client_timeout_seconds: float = 9.0
    client_cache_ttl_seconds: int = 3600
    data_dir: Path = Path("data")
    client_storage_filename: str = "client_storage.json"

    @property
    def client_storage_path(self) -> Path:
        return self.data_dir / self.client_storage_filename

    def init_post_load(self) -> None:
        """Validate the feed selection and ensure the client data directory exists."""
        allowed = {"cbr", "static"}
        if self.rate_feed not in allowed:
            raise ValueError(
                f"Unsupported rate_feed '{self.rate_feed}'. Allowed: {allowed}"
            )
        if self.rates_cache_ttl_seconds <= 0:
            raise ValueError("rates_cache_ttl_seconds must be positive")
        self.data_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
