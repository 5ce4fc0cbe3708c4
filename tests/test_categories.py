"""Tests for the category normalizer."""

import pytest

from finance_tracker.models.ledger import DEFAULT_INCOME_CATEGORIES
from finance_tracker.reporting.categories import first_match, normalize, seeded_totals


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize("raw,expected", [
        ("food", "Food"),
        ("FOOD", "Food"),
        ("Transport", "Transport"),
        ("etc.", "Etc."),
        ("groceries", "Etc."),
        ("", "Etc."),
        (None, "Etc."),
        (42, "Etc."),
    ])
    def test_expense_categories(self, raw, expected):
        """Test case-insensitive matching with the Etc. fallback."""
        assert normalize(raw) == expected

    def test_no_partial_match(self):
        """Test that only exact matches count."""
        assert normalize("Foods") == "Etc."
        assert normalize(" food") == "Etc."

    def test_custom_set_and_fallback(self):
        """Test the income category set."""
        assert normalize("gift", DEFAULT_INCOME_CATEGORIES, "Others") == "Gift"
        assert normalize("lottery", DEFAULT_INCOME_CATEGORIES, "Others") == "Others"

    def test_first_match_wins(self):
        """Test that the first canonical entry wins on duplicates."""
        assert normalize("a", ["A", "a"], "X") == "A"

    @pytest.mark.parametrize("raw", ["food", "BILLS", "unknown", "", None, "Etc."])
    def test_idempotent(self, raw):
        """Test normalize(normalize(x)) == normalize(x)."""
        once = normalize(raw)
        assert normalize(once) == once


class TestFirstMatch:
    """Tests for case-insensitive lookups."""

    def test_returns_first_of_duplicates(self):
        """Test the first of two matching items is returned."""
        items = [("food", 1), ("Food", 2)]
        assert first_match("FOOD", items, key=lambda item: item[0]) == ("food", 1)

    def test_no_match(self):
        """Test None when nothing matches."""
        assert first_match("Rent", ["Food", "Bills"]) is None
        assert first_match("", ["Food"]) is None


class TestSeededTotals:
    """Tests for zero-seeded totals."""

    def test_includes_fallback(self):
        """Test the fallback is seeded even if missing from the set."""
        totals = seeded_totals(["Food", "Bills"], "Etc.")
        assert list(totals) == ["Food", "Bills", "Etc."]
        assert all(value == 0 for value in totals.values())
