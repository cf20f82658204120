"""
Configuration Management for Budget Planner

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage key names, the base currency, the undo history bound and the
remote store credentials are all read from the environment (or a .env file)
and validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CATEGORIES = [
    "Salary",
    "Food",
    "Rent",
    "Transport",
    "Shopping",
    "Entertainment",
    "Utilities",
    "Savings",
    "Health",
    "Other",
]


class StorageSettings(BaseSettings):
    """Local mirror configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="file",
        pattern="^(memory|file)$",
        description="Key-value backend for the local mirror"
    )
    data_dir: Path = Field(
        default=Path(".budget_planner"),
        description="Directory holding the mirror files (file backend only)"
    )

    # Mirror key names
    transactions_key: str = Field(
        default="bp_transactions_v1",
        min_length=1,
        description="Key holding the serialized transactions"
    )
    budgets_key: str = Field(
        default="bp_budgets_v1",
        min_length=1,
        description="Key holding the serialized budgets"
    )
    categories_key: str = Field(
        default="bp_categories_v1",
        min_length=1,
        description="Key holding the user-registered categories"
    )
    watch_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="How often the file backend polls for changes made elsewhere"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How often live subscriptions re-read their worksheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before signing in."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Money
    base_currency: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="Currency applied when a transaction does not name one"
    )

    # Categories
    default_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES),
        description="Built-in category list shown before user categories"
    )

    # History
    undo_history_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum number of undoable actions kept"
    )

    # Budget alerting
    near_limit_ratio: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Share of a budget limit that triggers a near-limit notice"
    )

    # Dashboard
    chart_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Number of months in the income/expense series"
    )
    note_display_length: int = Field(
        default=60,
        ge=1,
        description="Characters of a note shown in listings"
    )

    @field_validator('base_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()


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

    # Sub-settings are loaded lazily so the remote store can stay unconfigured

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for every section that failed.
    The remote section failing only means sign-in is unavailable.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for name in ("storage", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results


def is_remote_configured() -> bool:
    """True when the Google Sheets section loads without errors."""
    try:
        get_settings().google_sheets
    except Exception:
        return False
    return True
