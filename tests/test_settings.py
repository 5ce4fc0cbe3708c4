"""Tests for configuration."""

import pytest
from pydantic import ValidationError

from finance_tracker.config import AppSettings, ReportingSettings, get_settings, validate_all_settings


class TestReportingSettings:
    """Tests for ReportingSettings."""

    def test_defaults(self):
        """Test the default category sets keep their order."""
        settings = ReportingSettings()
        assert settings.expense_category_list == ["Food", "Transport", "Bills", "Shopping", "Etc."]
        assert settings.income_category_list == ["Salary", "Business", "Freelance", "Gift", "Others"]

    def test_env_override(self, monkeypatch):
        """Test categories come from the environment and keep the fallback."""
        monkeypatch.setenv("REPORTING_EXPENSE_CATEGORIES", "Rent, Food ,,Fun")
        assert ReportingSettings().expense_category_list == ["Rent", "Food", "Fun", "Etc."]

    def test_threshold_bounds(self, monkeypatch):
        """Test an out-of-range threshold is rejected."""
        monkeypatch.setenv("REPORTING_NEAR_LIMIT_PERCENT", "150")
        with pytest.raises(ValidationError):
            ReportingSettings()

    def test_display_settings(self, monkeypatch):
        """Test the yearly window and currency symbol come from the environment."""
        monkeypatch.setenv("REPORTING_YEARLY_WINDOW", "3")
        monkeypatch.setenv("REPORTING_CURRENCY_SYMBOL", "$")
        reporting = get_settings().reporting
        assert reporting.yearly_window == 3
        assert reporting.currency_symbol == "$"


class TestAppSettings:
    """Tests for AppSettings."""

    def test_log_level_pattern(self, monkeypatch):
        """Test an unknown log level is rejected."""
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        with pytest.raises(ValidationError):
            AppSettings()


class TestValidateAllSettings:
    """Tests for validate_all_settings()."""

    def test_missing_google_sheets(self, monkeypatch):
        """Test missing storage settings are reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["reporting"] is True
        assert results["app"] is True

    def test_settings_are_cached(self):
        """Test get_settings returns the same object until cleared."""
        assert get_settings() is get_settings()
