from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PINGMAP_",
        case_sensitive=False,
    )

    # Design default: local async sqlite database.
    db_url: str = "sqlite+aiosqlite:///./data/dev.db"

    # Geohash
    # Ping exports carry geohash8 (~38m x 19m cells).
    default_precision: int = 8
    max_precision: int = 12

    # Ping ingestion
    max_batch_items: int = 10_000
    batch_error_policy: Literal["skip", "abort"] = "skip"

    # CORS (local map viewer)
    cors_allow_origin: str = "http://localhost:3000"
    cors_allow_credentials: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
