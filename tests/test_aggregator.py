"""Tests for the aggregator."""

from datetime import datetime
from decimal import Decimal

import pytest

from finance_tracker.models.ledger import Transaction, TransactionKind
from finance_tracker.models.reports import BalanceStatus
from finance_tracker.reporting.aggregator import (
    BUDGET_TIPS,
    aggregate,
    budget_limit_for,
    budget_status_summary,
    burn_rate,
    classify_balance,
    monthly_category_spend,
    monthly_tip,
    spent_this_month,
    utilization,
)
from factories import NOW, budget, expense, goal, income


class TestTotals:
    """Tests for the headline totals."""

    def test_reference_scenario(self):
        """Test income 5000, food 2000 against a Food budget of 1000."""
        snapshot = aggregate(
            income=[income(5000)],
            expenses=[expense(2000, category="food")],
            budgets=[budget("Food", 1000)],
            now=NOW,
        )
        assert snapshot.total_income == 5000
        assert snapshot.total_expenses == 2000
        assert snapshot.balance == 3000
        assert snapshot.savings_rate == 60

        food = snapshot.per_category_budget_utilization["Food"]
        assert food.spent == 2000
        assert food.percentage == 100
        assert food.is_over_budget is True
        assert snapshot.budget_rows[0].is_over_budget is True

    @pytest.mark.parametrize("inc,exp,on_target", [
        (1000, 700, True),
        (1000, 800, True),
        (1000, 900, False),
        (0, 0, False),
    ])
    def test_savings_target(self, inc, exp, on_target):
        """Test the savings rate is compared with the configured target."""
        incomes = [income(inc)] if inc else []
        snapshot = aggregate(incomes, [expense(exp)] if exp else [], [], now=NOW)
        assert snapshot.savings_on_target is on_target

    def test_empty_inputs(self):
        """Test aggregation over nothing."""
        snapshot = aggregate([], [], [], now=NOW)
        assert snapshot.balance == 0
        assert snapshot.savings_rate == 0
        assert snapshot.expense_ratio == 0
        assert snapshot.budget_burn_rate == 0
        assert snapshot.balance_status == BalanceStatus.EMPTY
        assert set(snapshot.per_category_monthly_spend) == {
            "Food", "Transport", "Bills", "Shopping", "Etc.",
        }

    @pytest.mark.parametrize("incomes,expenses", [
        ([100, 250.5], [30, 20]),
        ([], [10]),
        ([1000], []),
        ([0.1, 0.2], [0.3]),
    ])
    def test_balance_is_exact(self, incomes, expenses):
        """Test balance == total income - total expenses."""
        snapshot = aggregate(
            [income(a) for a in incomes],
            [expense(a) for a in expenses],
            [],
            now=NOW,
        )
        assert snapshot.balance == snapshot.total_income - snapshot.total_expenses
        assert snapshot.balance == sum(Decimal(str(a)) for a in incomes) - sum(
            Decimal(str(a)) for a in expenses
        )

    def test_ratios(self):
        """Test expense ratio, today's totals and counts."""
        snapshot = aggregate(
            income=[income(1000), income(500, when=datetime(2026, 4, 1))],
            expenses=[expense(300), expense(300, when=datetime(2026, 5, 19))],
            budgets=[],
            now=NOW,
        )
        assert snapshot.expense_ratio == 40
        assert snapshot.today_income == 1000
        assert snapshot.today_expenses == 300
        assert snapshot.income_count == 2
        assert snapshot.expense_count == 2

    def test_undated_records_count_in_totals_only(self):
        """Test an undated expense counts all-time but not this month."""
        snapshot = aggregate([income(100)], [expense(40, when=None)], [], now=NOW)
        assert snapshot.total_expenses == 40
        assert snapshot.per_category_monthly_spend["Food"] == 0
        assert snapshot.per_category_total_spend["Food"] == 40

    def test_income_by_category(self):
        """Test income is grouped into the income categories."""
        snapshot = aggregate(
            [income(10, "salary"), income(5, "lottery"), income(1, "Gift")],
            [],
            [],
            now=NOW,
        )
        assert snapshot.income_by_category["Salary"] == 10
        assert snapshot.income_by_category["Others"] == 5
        assert snapshot.income_by_category["Gift"] == 1


class TestMonthlySpend:
    """Tests for the current-month category totals."""

    def test_only_current_month(self, reporting):
        """Test expenses outside the month are excluded."""
        expenses = [
            expense(10, "Food", datetime(2026, 5, 1, 0, 0)),
            expense(20, "food", datetime(2026, 5, 31, 23, 59)),
            expense(40, "Food", datetime(2026, 4, 30, 23, 59)),
            expense(80, "Food", datetime(2026, 6, 1)),
        ]
        totals = monthly_category_spend(
            expenses, NOW, reporting.expense_category_list, reporting.expense_fallback_category,
        )
        assert totals["Food"] == 30

    def test_unknown_category_goes_to_fallback(self, reporting):
        """Test ad hoc categories are summed under Etc."""
        totals = monthly_category_spend(
            [expense(7, "Groceries")], NOW,
            reporting.expense_category_list, reporting.expense_fallback_category,
        )
        assert totals["Etc."] == 7

    def test_spent_this_month(self, reporting):
        """Test the helper normalizes the requested category."""
        expenses = [expense(15, "bills"), expense(5, "Bills", datetime(2026, 1, 2))]
        assert spent_this_month(expenses, "BILLS", NOW, reporting) == 15


class TestUtilization:
    """Tests for budget utilization."""

    def test_over_limit_is_clamped(self):
        """Test limit 1000, spent 1200 gives 100% and over budget."""
        item = utilization("Food", Decimal("1200"), Decimal("1000"))
        assert item.percentage == 100
        assert item.raw_percentage == 120
        assert item.is_over_budget is True

    def test_under_limit(self):
        """Test a partial spend."""
        item = utilization("Food", Decimal("250"), Decimal("1000"))
        assert item.percentage == 25
        assert item.is_over_budget is False

    def test_zero_limit(self):
        """Test a zero limit reports 0% but any spend is over."""
        item = utilization("Bills", Decimal("1"), Decimal("0"))
        assert item.percentage == 0
        assert item.is_over_budget is True

    def test_no_limit(self):
        """Test a category without a budget is never over."""
        item = utilization("Bills", Decimal("500"), None)
        assert item.percentage == 0
        assert item.is_over_budget is False
        assert item.has_limit is False

    def test_budget_category_is_matched_case_insensitively(self):
        """Test a lowercase budget row matches the Food total."""
        snapshot = aggregate([income(100)], [expense(30, "Food")], [budget("food", 60)], now=NOW)
        row = snapshot.budget_rows[0]
        assert row.category == "food"
        assert row.spent == 30
        assert row.percentage == 50

    def test_unmatched_budget_row_has_no_spend(self):
        """Test a budget for an ad hoc category reports zero spend."""
        snapshot = aggregate([], [expense(30, "Groceries")], [budget("Groceries", 60)], now=NOW)
        assert snapshot.budget_rows[0].spent == 0

    def test_first_budget_wins(self):
        """Test duplicate budgets resolve to the first row."""
        budgets = [budget("Food", 100, id="a"), budget("FOOD", 999, id="b")]
        assert budget_limit_for(budgets, "food").id == "a"
        snapshot = aggregate([], [], budgets, now=NOW)
        assert snapshot.per_category_budget_utilization["Food"].budget_id == "a"
        assert len(snapshot.budget_rows) == 2


class TestBudgetStatus:
    """Tests for the budget status summary."""

    def test_counts(self):
        """Test on-track, over and near-limit counts."""
        rows = [
            utilization("Food", Decimal("80"), Decimal("100")),       # near limit
            utilization("Bills", Decimal("100"), Decimal("100")),     # near limit, on track
            utilization("Transport", Decimal("150"), Decimal("100")), # over
            utilization("Shopping", Decimal("10"), Decimal("100")),   # on track
        ]
        summary = budget_status_summary(rows)
        assert summary.on_track == 3
        assert summary.over == 1
        assert summary.near_limit == 2

    def test_burn_rate_rounds(self):
        """Test burn rate rounds to a whole percent and is not clamped."""
        assert burn_rate(Decimal("2"), Decimal("3")) == 67
        assert burn_rate(Decimal("300"), Decimal("100")) == 300
        assert burn_rate(Decimal("5"), Decimal("0")) == 0


class TestBalanceStatus:
    """Tests for classify_balance()."""

    @pytest.mark.parametrize("inc,exp,expected", [
        (0, 0, BalanceStatus.EMPTY),
        (100, 100, BalanceStatus.DEPLETED),
        (0, 10, BalanceStatus.DEPLETED),
        (100, 70, BalanceStatus.TIGHT),
        (100, 60, BalanceStatus.HEALTHY),
    ])
    def test_classification(self, inc, exp, expected):
        """Test each balance band."""
        assert classify_balance(Decimal(inc), Decimal(exp)) == expected

    def test_spending_without_income(self):
        """Test a snapshot with expenses but no income is depleted."""
        snapshot = aggregate([], [expense(10)], [], now=NOW)
        assert snapshot.balance == -10
        assert snapshot.balance_status == BalanceStatus.DEPLETED


class TestExtras:
    """Tests for goals and tips."""

    def test_goal_summary(self):
        """Test completed goals are counted."""
        snapshot = aggregate([], [], [], goals=[goal("A", 100), goal("B", 40)], now=NOW)
        assert snapshot.goals.total == 2
        assert snapshot.goals.completed == 1

    def test_monthly_tip_rotates(self):
        """Test the tip cycles through the list by month."""
        assert monthly_tip(datetime(2026, 1, 1)) == BUDGET_TIPS[0]
        assert monthly_tip(datetime(2026, 5, 1)) == BUDGET_TIPS[0]
        assert monthly_tip(datetime(2026, 6, 1)) == BUDGET_TIPS[1]

    def test_mixed_kinds_are_not_checked(self):
        """Test the aggregator trusts the collection it is given."""
        stray = Transaction(kind=TransactionKind.INCOME, amount=Decimal("5"), date=NOW)
        snapshot = aggregate([], [stray], [], now=NOW)
        assert snapshot.total_expenses == 5
