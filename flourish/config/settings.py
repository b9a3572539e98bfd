"""
Configuration Management for Flourish

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Rule thresholds, the storage backend and the (inert) remote database
settings are all visible in one place and validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Which blob store backs the entity store."""

    model_config = SettingsConfigDict(
        env_prefix="FLOURISH_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(memory|json|google_sheets)$",
        description="Storage backend to use"
    )
    json_path: str = Field(
        default="flourish_data.json",
        description="Path of the JSON file used by the json backend"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One row per collection: key | payload | updated_at
    collections_sheet_name: str = Field(
        default="Collections",
        description="Name of the sheet holding serialized collections"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class RemoteDBSettings(BaseSettings):
    """
    Remote database configuration.

    Read at startup for compatibility with existing deployments, but
    nothing connects to it. Local storage is always used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    use_remote_db: bool = Field(
        default=False,
        validation_alias="USE_REMOTE_DB",
    )
    db_host: str = Field(default="", validation_alias="DB_HOST")
    db_port: str = Field(default="", validation_alias="DB_PORT")
    db_name: str = Field(default="", validation_alias="DB_NAME")
    db_username: str = Field(default="", validation_alias="DB_USERNAME")
    db_password: str = Field(default="", validation_alias="DB_PASSWORD")

    @property
    def is_configured(self) -> bool:
        return self.use_remote_db and bool(self.db_host)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOURISH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    currency_code: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Default currency code when none has been persisted"
    )

    # Action Center thresholds
    friend_balance_alert_threshold: Decimal = Field(
        default=Decimal("50"),
        ge=0,
        description="Balances owed above this amount raise a reminder"
    )
    salary_due_window_days: int = Field(
        default=3,
        ge=0,
        description="Days ahead a salary deposit counts as due soon"
    )
    subscription_due_window_days: int = Field(
        default=7,
        ge=0,
        description="Days ahead a subscription counts as due soon"
    )
    monthly_review_reminder_days: str = Field(
        default="7,3,0",
        description="Comma-separated days-before-month-end to remind about the review"
    )

    # Ledger
    reconciliation_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Differences at or below this are treated as matching"
    )

    @property
    def review_reminder_days_list(self) -> list[int]:
        """Get reminder days as a list."""
        return [
            int(day.strip())
            for day in self.monthly_review_reminder_days.split(",")
            if day.strip()
        ]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def remote_db(self) -> RemoteDBSettings:
        return RemoteDBSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(include: Optional[list[str]] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each failure.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()
    names = include or ["storage", "google_sheets", "remote_db", "app"]

    for name in names:
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
