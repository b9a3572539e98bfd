"""Configuration package."""

from flourish.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    RemoteDBSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "RemoteDBSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
