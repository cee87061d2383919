"""Configuration settings for the ClinicDesk data service."""

from pathlib import Path
from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings


def _find_env_file() -> str:
    """Find .env file - check current dir, then parent (repository root)."""
    current = Path.cwd()

    # Check current directory
    if (current / ".env").exists():
        return str(current / ".env")

    # Check parent directory (when running from server/)
    if (current.parent / ".env").exists():
        return str(current.parent / ".env")

    # Default to current directory
    return ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    port: int = 3456
    host: str = "0.0.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Document database
    backend: Literal["memory", "firestore"] = "memory"
    firestore_project_id: str = ""
    firestore_database: str = "(default)"
    firestore_api_key: str = ""
    firestore_timeout: float = 10.0

    # Cache TTLs (in seconds)
    default_cache_ttl: float = 300  # 5 minutes
    products_cache_ttl: float = 600  # 10 minutes
    centers_cache_ttl: float = 900  # 15 minutes
    dashboard_cache_ttl: float = 600  # 10 minutes

    # Background sweep of expired entries
    cache_sweep_interval: float = 600  # 10 minutes
    cache_sweep_initial_delay: float = 1

    default_page_size: int = 25

    class Config:
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
