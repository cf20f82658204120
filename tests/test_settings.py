"""Tests for environment-driven settings."""

import pytest

from budget_planner.config import (
    AppSettings,
    StorageSettings,
    get_settings,
    is_remote_configured,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_app_defaults():
    settings = AppSettings()
    assert settings.base_currency == "INR"
    assert settings.undo_history_limit == 50
    assert settings.near_limit_ratio == 0.9
    assert "Other" in settings.default_categories


def test_currency_is_normalized(monkeypatch):
    monkeypatch.setenv("BASE_CURRENCY", "usd")
    assert AppSettings().base_currency == "USD"


def test_storage_env_prefix(monkeypatch, tmp_path):
    monkeypatch.setenv("BUDGET_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("BUDGET_STORAGE_DATA_DIR", str(tmp_path / "data"))

    settings = StorageSettings()

    assert settings.backend == "memory"
    assert settings.data_dir == tmp_path / "data"
    assert settings.transactions_key == "bp_transactions_v1"


def test_invalid_storage_backend(monkeypatch):
    monkeypatch.setenv("BUDGET_STORAGE_BACKEND", "cloud")
    results = validate_all_settings()
    assert results["storage"] is False
    assert "storage_error" in results


def test_remote_unconfigured_without_env():
    assert is_remote_configured() is False
    results = validate_all_settings()
    assert results["app"] is True
    assert results["google_sheets"] is False


def test_remote_configured(monkeypatch, tmp_path):
    credentials = tmp_path / "service.json"
    credentials.write_text("{}")
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
    monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")

    assert is_remote_configured() is True
    assert get_settings().google_sheets.poll_interval_seconds == 5.0
