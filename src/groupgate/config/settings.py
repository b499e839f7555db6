from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GROUPGATE_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: str = Field(default="dev", description="Environment name")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level for the CLI")

    # Database
    DATABASE_URL: str = Field(default="sqlite:///groupgate_dev.db")
    TEST_DATABASE_URL: str = Field(default="sqlite:///:memory:")
    SCHEMA_MODE: str = Field(
        default="create_all",
        description="create_all: auto-create tables (dev), migrations: use Alembic only (prod)",
    )
    SQL_ECHO: bool = Field(default=False, description="Echo SQL statements")

    # Group access
    GROUP_ACCESS_CACHE_ENABLED: bool = Field(
        default=False,
        description="Cache owner access maps in-process; invalidated on every commit",
    )
    GROUP_ACCESS_WRITE_IMPLIES_FULL: bool = Field(
        default=True,
        description="Add 'full' to every staged group grant, as access queries do",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
