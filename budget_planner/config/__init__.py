"""Configuration package."""

from budget_planner.config.settings import (
    DEFAULT_CATEGORIES,
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    StorageSettings,
    get_settings,
    is_remote_configured,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "is_remote_configured",
    "validate_all_settings",
]
