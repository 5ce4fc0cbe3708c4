"""
Aggregator

Computes the AggregateSnapshot from typed income, expense, budget and
goal collections. Pure and synchronous: the same inputs and reference
time always give the same snapshot.

DESIGN DECISION: The per-category monthly spend is pre-seeded with every
canonical category, so a category with no spending reports 0 instead of
being absent. Budget rows are matched to those totals case-insensitively
because budget categories are stored exactly as the user typed them.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from finance_tracker.config import ReportingSettings, get_settings
from finance_tracker.models.ledger import Budget, Goal, Transaction
from finance_tracker.models.reports import (
    AggregateSnapshot,
    BalanceStatus,
    BudgetStatusSummary,
    BudgetUtilization,
    GoalSummary,
)
from finance_tracker.reporting.buckets import as_local_naive, month_bounds, record_datetime
from finance_tracker.reporting.categories import first_match, normalize, seeded_totals
from finance_tracker.reporting.numbers import HUNDRED, ZERO, coerce_amount, ratio_percent, total

BUDGET_TIPS = [
    "Try the 50/30/20 rule: 50% needs, 30% wants, 20% savings",
    "Set up automatic transfers to your goals on payday",
    "Review your spending weekly to stay on track",
    "Meal planning can save you 20-30% on food costs",
]


def _reporting(settings: Optional[ReportingSettings]) -> ReportingSettings:
    return settings or get_settings().reporting


# =============================================================================
# CATEGORY TOTALS
# =============================================================================

def category_spend(
    expenses: Iterable[Transaction],
    categories: Sequence[str],
    fallback: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> dict[str, Decimal]:
    """
    Sum expenses per canonical category, optionally within a date range.

    When a range is given, expenses without a date are skipped.
    """
    totals = seeded_totals(categories, fallback)
    for expense in expenses:
        if date_from is not None or date_to is not None:
            when = record_datetime(expense)
            if when is None:
                continue
            if date_from is not None and when < date_from:
                continue
            if date_to is not None and when > date_to:
                continue
        category = normalize(expense.category, categories, fallback)
        totals[category] += coerce_amount(expense.amount)
    return totals


def monthly_category_spend(
    expenses: Iterable[Transaction],
    now: datetime,
    categories: Sequence[str],
    fallback: str,
) -> dict[str, Decimal]:
    """Per-category spend from the 1st of `now`'s month to its last instant."""
    first, last = month_bounds(now)
    return category_spend(expenses, categories, fallback, date_from=first, date_to=last)


def spent_this_month(
    expenses: Iterable[Transaction],
    category: str,
    now: datetime,
    settings: Optional[ReportingSettings] = None,
) -> Decimal:
    """Current-month spend for the category `category` normalizes to."""
    rules = _reporting(settings)
    categories = rules.expense_category_list
    fallback = rules.expense_fallback_category
    monthly = monthly_category_spend(expenses, as_local_naive(now), categories, fallback)
    return monthly[normalize(category, categories, fallback)]


def budget_limit_for(budgets: Sequence[Budget], category: str) -> Optional[Budget]:
    """
    The budget governing `category`, if any.

    Budgets are not unique per category; the first case-insensitive
    match wins.
    """
    return first_match(category, budgets, key=lambda budget: budget.category)


# =============================================================================
# BUDGET UTILIZATION
# =============================================================================

def utilization(
    category: str,
    spent: Decimal,
    limit: Optional[Decimal],
    budget_id: Optional[str] = None,
) -> BudgetUtilization:
    """
    Spend against a limit.

    With no limit the utilization is "no limit": percentage 0 and never
    over budget. A zero limit also yields percentage 0, but any spend
    against it is over budget.
    """
    if limit is None:
        return BudgetUtilization(category=category, spent=spent)

    raw = ratio_percent(spent, limit)
    percentage = min(raw, HUNDRED) if limit > 0 else ZERO
    return BudgetUtilization(
        category=category,
        budget_id=budget_id,
        spent=spent,
        limit=limit,
        percentage=percentage,
        raw_percentage=raw,
        is_over_budget=spent > limit,
    )


def _monthly_spent_for(monthly_spend: dict[str, Decimal], category: str) -> Decimal:
    key = first_match(category, list(monthly_spend))
    return monthly_spend[key] if key is not None else ZERO


def budget_rows_utilization(
    budgets: Sequence[Budget],
    monthly_spend: dict[str, Decimal],
) -> list[BudgetUtilization]:
    """One utilization per budget row, in the order the rows were fetched."""
    return [
        utilization(
            category=budget.category,
            spent=_monthly_spent_for(monthly_spend, budget.category),
            limit=coerce_amount(budget.amount),
            budget_id=budget.id,
        )
        for budget in budgets
    ]


def utilization_by_category(
    budgets: Sequence[Budget],
    monthly_spend: dict[str, Decimal],
) -> dict[str, BudgetUtilization]:
    """One utilization per canonical category; first matching budget wins."""
    result = {}
    for category, spent in monthly_spend.items():
        budget = budget_limit_for(budgets, category)
        result[category] = utilization(
            category=category,
            spent=spent,
            limit=coerce_amount(budget.amount) if budget else None,
            budget_id=budget.id if budget else None,
        )
    return result


def budget_status_summary(
    rows: Iterable[BudgetUtilization],
    near_limit_percent: float = 75.0,
) -> BudgetStatusSummary:
    """Count budget rows that are on track, over, or near their limit."""
    threshold = Decimal(str(near_limit_percent))
    on_track = over = near = 0
    for row in rows:
        if row.is_over_budget:
            over += 1
        else:
            on_track += 1
        if row.limit and threshold <= row.raw_percentage <= HUNDRED:
            near += 1
    return BudgetStatusSummary(on_track=on_track, over=over, near_limit=near)


# =============================================================================
# KPIs
# =============================================================================

def classify_balance(
    total_income: Decimal,
    total_expenses: Decimal,
    tight_ratio: float = 0.4,
) -> BalanceStatus:
    """EMPTY only with no records at all; spending without income is DEPLETED."""
    balance = total_income - total_expenses
    if total_income == 0 and total_expenses == 0:
        return BalanceStatus.EMPTY
    if balance <= 0:
        return BalanceStatus.DEPLETED
    if balance < total_income * Decimal(str(tight_ratio)):
        return BalanceStatus.TIGHT
    return BalanceStatus.HEALTHY


def burn_rate(total_expenses: Decimal, total_budgeted: Decimal) -> int:
    """Spend as a whole percentage of everything budgeted (0 if nothing is)."""
    rate = ratio_percent(total_expenses, total_budgeted)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def day_total(records: Iterable[Transaction], now: datetime) -> Decimal:
    """Sum of records dated on `now`'s calendar day."""
    today = now.date()
    amount = ZERO
    for record in records:
        when = record_datetime(record)
        if when is not None and when.date() == today:
            amount += coerce_amount(record.amount)
    return amount


def income_by_category(
    income: Iterable[Transaction],
    settings: Optional[ReportingSettings] = None,
) -> dict[str, Decimal]:
    rules = _reporting(settings)
    categories = rules.income_category_list
    fallback = rules.income_fallback_category
    totals = seeded_totals(categories, fallback)
    for record in income:
        totals[normalize(record.category, categories, fallback)] += coerce_amount(record.amount)
    return totals


def monthly_tip(now: datetime) -> str:
    """Budgeting tip of the month (rotates by month number)."""
    return BUDGET_TIPS[(now.month - 1) % len(BUDGET_TIPS)]


# =============================================================================
# SNAPSHOT
# =============================================================================

def aggregate(
    income: Sequence[Transaction],
    expenses: Sequence[Transaction],
    budgets: Sequence[Budget],
    goals: Sequence[Goal] = (),
    now: Optional[datetime] = None,
    settings: Optional[ReportingSettings] = None,
) -> AggregateSnapshot:
    """
    Build the AggregateSnapshot.

    Any of the collections may be empty. Amounts that are missing or
    non-numeric count as 0.
    """
    rules = _reporting(settings)
    now = as_local_naive(now or datetime.now())
    categories = rules.expense_category_list
    fallback = rules.expense_fallback_category

    total_income = total(record.amount for record in income)
    total_expenses = total(record.amount for record in expenses)
    balance = total_income - total_expenses
    total_budgeted = total(budget.amount for budget in budgets)
    savings_rate = ratio_percent(balance, total_income)

    monthly = monthly_category_spend(expenses, now, categories, fallback)
    rows = budget_rows_utilization(budgets, monthly)

    return AggregateSnapshot(
        computed_at=now,
        total_income=total_income,
        total_expenses=total_expenses,
        balance=balance,
        savings_rate=savings_rate,
        savings_on_target=(
            total_income > 0
            and savings_rate >= Decimal(str(rules.savings_target_percent))
        ),
        expense_ratio=ratio_percent(total_expenses, total_income),
        total_budgeted=total_budgeted,
        budget_burn_rate=burn_rate(total_expenses, total_budgeted),
        today_income=day_total(income, now),
        today_expenses=day_total(expenses, now),
        per_category_monthly_spend=monthly,
        per_category_total_spend=category_spend(expenses, categories, fallback),
        income_by_category=income_by_category(income, rules),
        per_category_budget_utilization=utilization_by_category(budgets, monthly),
        budget_rows=rows,
        budget_status=budget_status_summary(rows, rules.near_limit_percent),
        balance_status=classify_balance(total_income, total_expenses, rules.tight_balance_ratio),
        goals=GoalSummary(
            total=len(goals),
            completed=sum(1 for goal in goals if goal.is_completed),
        ),
        income_count=len(income),
        expense_count=len(expenses),
        budget_count=len(budgets),
    )
