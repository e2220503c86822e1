"""
Configuration settings for docquery.

Uses pydantic-settings for type-safe configuration from environment variables.
The query layer never reads these itself; entry points build a ``Settings``
and pass it to ``docquery.store.create_client``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docquery configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # MongoDB
    mongodb_uri: SecretStr = Field(
        ...,
        description="MongoDB connection URI (transactions need a replica set)",
    )
    mongodb_database: str | None = Field(
        default=None,
        description="Explicit database name (overrides prefix + mode)",
    )
    database_prefix: str = Field(
        default="app",
        description="Database name prefix, combined with mode",
    )
    mode: str = Field(
        default="dev",
        description="Run mode (dev, staging, prod); selects the database",
    )

    # Driver settings
    server_selection_timeout_ms: int = Field(
        default=5000,
        ge=1,
        description="How long to wait for a usable server before failing",
    )
    app_name: str = Field(
        default="docquery",
        description="Application name reported to the server",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level for docquery loggers",
    )

    @property
    def database_name(self) -> str:
        """Resolved database name, e.g. 'app-dev'."""
        if self.mongodb_database:
            return self.mongodb_database
        return f"{self.database_prefix}-{self.mode}".lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
