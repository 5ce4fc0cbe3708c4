"""Tests for the expense write guards."""

from decimal import Decimal

import pytest

from finance_tracker.config import ReportingSettings
from finance_tracker.models.ledger import TransactionDraft
from finance_tracker.reporting.aggregator import aggregate
from finance_tracker.validation.guards import (
    ExpenseCheckOutcome,
    check_amount_ceiling,
    check_expense,
    has_sufficient_balance,
    would_exceed_budget,
)
from factories import NOW, budget, expense, income


def draft(amount, category="Food") -> TransactionDraft:
    return TransactionDraft(title="Test", amount=Decimal(str(amount)), category=category)


class TestBalanceCheck:
    """Tests for the hard balance stop."""

    def test_rejects_more_than_balance(self, reporting):
        """Test 400 against a balance of 300 is rejected."""
        snapshot = aggregate([income(300)], [], [], now=NOW)
        check = check_expense(draft(400), snapshot, [], settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.INSUFFICIENT_BALANCE
        assert check.allowed is False
        assert check.balance == 300

    def test_exact_balance_is_allowed(self):
        """Test spending the whole balance is fine."""
        assert has_sufficient_balance(Decimal("300"), Decimal("300")) is True
        assert has_sufficient_balance(Decimal("300.01"), Decimal("300")) is False

    def test_balance_wins_over_budget(self, reporting):
        """Test the balance check runs before the budget check."""
        snapshot = aggregate([income(10)], [], [budget("Food", 5)], now=NOW)
        check = check_expense(draft(20), snapshot, [budget("Food", 5)], settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.INSUFFICIENT_BALANCE

    def test_override_does_not_skip_balance(self, reporting):
        """Test a confirmed override still hits the balance stop."""
        snapshot = aggregate([income(10)], [], [], now=NOW)
        check = check_expense(draft(20), snapshot, [], skip_budget_check=True, settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.INSUFFICIENT_BALANCE


class TestBudgetCheck:
    """Tests for the soft budget limit."""

    def test_bills_over_limit(self, reporting):
        """Test 50 in Bills against a limit of 40 needs confirmation."""
        budgets = [budget("Bills", 40, id="b1")]
        snapshot = aggregate([income(1000)], [], budgets, now=NOW)
        check = check_expense(draft(50, "Bills"), snapshot, budgets, settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.BUDGET_EXCEEDED
        assert check.limit == 40
        assert check.spent_this_month == 0
        assert check.projected_spend == 50
        assert check.budget_id == "b1"

    def test_counts_this_month_spend(self, reporting):
        """Test earlier spend this month counts toward the limit."""
        budgets = [budget("food", 100)]
        snapshot = aggregate([income(1000)], [expense(70, "Food")], budgets, now=NOW)
        assert check_expense(draft(30), snapshot, budgets, settings=reporting).outcome == ExpenseCheckOutcome.OK
        assert check_expense(draft(31), snapshot, budgets, settings=reporting).outcome == ExpenseCheckOutcome.BUDGET_EXCEEDED

    def test_skip_budget_check(self, reporting):
        """Test a confirmed override passes the budget check."""
        budgets = [budget("Bills", 40)]
        snapshot = aggregate([income(1000)], [], budgets, now=NOW)
        check = check_expense(draft(50, "Bills"), snapshot, budgets, skip_budget_check=True, settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.OK

    def test_no_budget(self, reporting):
        """Test a category without a budget is never over."""
        snapshot = aggregate([income(1000)], [], [], now=NOW)
        check = check_expense(draft(900, "Shopping"), snapshot, [], settings=reporting)
        assert check.allowed is True
        assert check.limit is None

    def test_would_exceed_budget(self):
        """Test the limit itself is still within budget."""
        assert would_exceed_budget(Decimal("30"), Decimal("10"), Decimal("40")) is False
        assert would_exceed_budget(Decimal("30"), Decimal("11"), Decimal("40")) is True
        assert would_exceed_budget(Decimal("30"), Decimal("11"), None) is False


class TestAmountCeiling:
    """Tests for the configured maximum amount."""

    def test_ceiling(self):
        """Test amounts above the ceiling raise."""
        check_amount_ceiling(Decimal("100"), 100.0)
        with pytest.raises(ValueError):
            check_amount_ceiling(Decimal("100.01"), 100.0)


class TestCategoryMatching:
    """Tests for which budget governs a draft's category."""

    def test_unknown_category_checks_fallback_budget(self, reporting):
        """Test an ad hoc category is checked against the Etc. budget."""
        budgets = [budget("Etc.", 40, id="etc")]
        snapshot = aggregate([income(1000)], [], budgets, now=NOW)
        check = check_expense(draft(50, "Misc"), snapshot, budgets, settings=reporting)
        assert check.outcome == ExpenseCheckOutcome.BUDGET_EXCEEDED
        assert check.category == "Etc."
        assert check.limit == 40
        assert check.budget_id == "etc"

    def test_guard_agrees_with_utilization(self, reporting):
        """Test the guard and the snapshot see the same spend and limit."""
        budgets = [budget("Etc.", 100)]
        snapshot = aggregate([income(1000)], [expense(70, "groceries")], budgets, now=NOW)
        check = check_expense(draft(31, "Groceries"), snapshot, budgets, settings=reporting)
        assert check.spent_this_month == snapshot.per_category_budget_utilization["Etc."].spent
        assert check.outcome == ExpenseCheckOutcome.BUDGET_EXCEEDED


class TestMessages:
    """Tests for the user-facing messages."""

    def test_currency_symbol(self):
        """Test messages use the configured currency symbol."""
        settings = ReportingSettings(currency_symbol="$")
        snapshot = aggregate([income(1200)], [], [], now=NOW)
        check = check_expense(draft(1500), snapshot, [], settings=settings)
        assert check.message == "Insufficient balance: $1,500.00 requested, $1,200.00 available"
