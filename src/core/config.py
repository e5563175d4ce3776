"""Configuration management for rotinas."""

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShortMonthPolicy(StrEnum):
    """How monthly routines anchored on days 29-31 behave in shorter months."""

    CLAMP = "clamp"  # Due on the last day of the shorter month
    SKIP = "skip"  # Not due at all that month


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="data/rotinas.db", description="Path to the SQLite database file")

    # Blob Store Configuration
    blob_store_url: str = Field(default="http://127.0.0.1:54321", description="Object storage base URL")
    blob_store_bucket: str = Field(default="rotina-anexos", description="Bucket that receives execution attachments")
    blob_store_api_key: str | None = Field(default=None, description="Object storage API key (optional)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Engine Configuration
    repository_timeout_seconds: float = Field(
        default=10.0, description="Upper bound for a single repository call before it is reported as failed"
    )
    elapsed_tick_seconds: float = Field(default=1.0, description="Refresh interval of the elapsed-time display")
    monthly_short_month_policy: ShortMonthPolicy = Field(
        default=ShortMonthPolicy.CLAMP,
        description="Monthly recurrence behavior when the anchor day does not exist in a month",
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_CREATED: int = 201
    HTTP_NOT_FOUND: int = 404
    HTTP_CONFLICT: int = 409
    HTTP_UNPROCESSABLE: int = 422
    HTTP_BAD_GATEWAY: int = 502

    # Clock arithmetic
    MINUTES_PER_DAY: int = 24 * 60
    SECONDS_PER_HOUR: int = 3600
    SECONDS_PER_MINUTE: int = 60

    # Recurrence search horizon (one leap year plus a day covers every variant)
    MAX_RECURRENCE_LOOKAHEAD_DAYS: int = 367

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500

    # Attachment storage
    DEFAULT_ATTACHMENT_EXTENSION: str = "bin"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
