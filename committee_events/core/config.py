# committee_events/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Committee Events"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./committee_events.db",
        description="SQLAlchemy-compatible async database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Materialization ---
    DEFAULT_MONTHS_AHEAD: int = Field(
        default=6,
        ge=1,
        description="Horizon (in months) used when no explicit window is requested.",
    )
    MAX_MONTHS_AHEAD: int = Field(
        default=24,
        ge=1,
        description="Upper bound accepted for operator-chosen horizons.",
    )
    MATERIALIZE_MAX_CONCURRENCY: int = Field(
        default=4,
        ge=1,
        description="How many series the rolling-window job materializes at once.",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR).",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Settings are read and validated once; tests call `get_settings.cache_clear()`
    after changing the environment.
    """
    return Settings()
