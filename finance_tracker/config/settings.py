"""
Configuration Management for Finance Tracker

Settings are read from the environment (and .env) with pydantic-settings.

DESIGN DECISION: Every tunable lives in this module.
The category sets, thresholds and storage coordinates used by the
reporting core are all read from one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the ledger worksheets"
    )

    # One worksheet per ledger table
    income_sheet_name: str = Field(default="Income")
    expenses_sheet_name: str = Field(default="Expenses")
    budgets_sheet_name: str = Field(default="Budgets")
    goals_sheet_name: str = Field(default="Goals")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet the audit trail is appended to"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing credentials file only warns; it may be mounted after import."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class ReportingSettings(BaseSettings):
    """
    Reporting rules: category sets and thresholds.

    Category lists are ordered; the order is the order charts and
    pre-seeded totals use.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPORTING_",
        extra="ignore"
    )

    expense_categories: str = Field(
        default="Food,Transport,Bills,Shopping,Etc.",
        description="Comma-separated canonical expense categories"
    )
    income_categories: str = Field(
        default="Salary,Business,Freelance,Gift,Others",
        description="Comma-separated canonical income categories"
    )
    expense_fallback_category: str = Field(default="Etc.")
    income_fallback_category: str = Field(default="Others")

    near_limit_percent: float = Field(
        default=75.0,
        ge=0.0,
        le=100.0,
        description="Budget percentage from which a budget counts as near its limit"
    )
    tight_balance_ratio: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Balance below this share of income is reported as tight"
    )
    savings_target_percent: float = Field(default=20.0, ge=0.0, le=100.0)
    yearly_window: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of years shown by the yearly bucketing mode"
    )
    currency_symbol: str = Field(default="₱")

    @property
    def expense_category_list(self) -> list[str]:
        """Canonical expense categories, fallback guaranteed last if missing."""
        categories = _split_csv(self.expense_categories)
        if self.expense_fallback_category not in categories:
            categories.append(self.expense_fallback_category)
        return categories

    @property
    def income_category_list(self) -> list[str]:
        categories = _split_csv(self.income_categories)
        if self.income_fallback_category not in categories:
            categories.append(self.income_fallback_category)
        return categories


class AppSettings(BaseSettings):
    """
    Process-wide settings: environment, log level, amount ceiling.
    """

    model_config = SettingsConfigDict(
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
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    # Sanity ceiling for a single income/expense draft
    max_transaction_amount: float = Field(
        default=10_000_000.0,
        gt=0,
        description="Maximum amount accepted for one transaction"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Entry point for every settings group.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built on access so the reporting core works
    # without storage credentials.

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def reporting(self) -> ReportingSettings:
        return ReportingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    The process-wide Settings, built once.

    Tests call get_settings.cache_clear() to pick up a new environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Try to build every settings group.

    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each failure.
    Useful for startup checks.
    """
    results: dict[str, bool | str] = {}
    settings = get_settings()

    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "reporting": lambda: settings.reporting,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
