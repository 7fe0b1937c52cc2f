"""Application settings with environment variable support."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pathlib import Path


# Compute base_dir at module level
_BASE_DIR = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FEEDSIEVE_",  # FEEDSIEVE_MAX_WORKERS, FEEDSIEVE_CACHE_DATABASE_URL, etc.
    )

    # Paths
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    outputs_dir: Path = _BASE_DIR / "outputs"
    feeds_config_path: Path = _BASE_DIR / "config" / "feeds.json"

    # Cache
    cache_database_url: str = f"sqlite:///{_BASE_DIR / 'data' / 'feedsieve_cache.db'}"
    default_days_to_cache: int = 7

    # Scheduling
    max_workers: int = 5
    run_timeout_seconds: Optional[float] = None

    # Fetching
    fetch_timeout_seconds: int = 30
    fetch_max_retries: int = 3
    user_agent: str = "feedsieve/0.1"

    # Output
    output_formats: List[str] = ["text"]


settings = Settings()
