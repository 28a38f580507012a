"""
Configuration for the finance tracker.

Values come from environment variables prefixed with ``TRACKER_`` or from a
local ``.env`` file.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./tracker.db",
        description="SQLAlchemy database URL",
    )
    app_title: str = Field(default="Personal Finance Tracker")
    debug: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (otherwise console format)",
    )

    seed_defaults: bool = Field(
        default=True,
        description="Insert default accounts and categories on first start",
    )
    allow_negative_transfers: bool = Field(
        default=True,
        description="Let a transfer take the source account below zero",
    )

    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=200, ge=1)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return Settings()
