"""Application configuration — environment-driven settings via pydantic-settings.

All values come from ``AETHER_*`` environment variables or a ``.env`` file.
``get_settings()`` is cached; tests construct ``Settings`` directly instead.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the API pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="AETHER_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    environment: Literal["development", "production", "test"] = "development"

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    debug_trace: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./aether.db"
    database_pool_size: int = 5

    # Rate limiting: 100 requests per 15 minutes
    rate_limit_max_requests: int = Field(default=100, gt=0)
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000, gt=0)

    # CORS
    cors_origin: str = "*"
    cors_methods: list[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    cors_headers: list[str] = ["Content-Type", "Authorization"]

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs its driver."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def expose_errors(self) -> bool:
        """Whether internal error messages and stacks reach API clients."""
        return not self.is_production


@lru_cache
def get_settings() -> Settings:
    return Settings()
