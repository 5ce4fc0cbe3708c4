"""Shared fixtures."""

from datetime import datetime

import pytest

from finance_tracker.config import ReportingSettings, get_settings
from factories import NOW


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached process-wide; start every test from a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def reporting() -> ReportingSettings:
    return ReportingSettings()


@pytest.fixture
def now() -> datetime:
    return NOW
