"""
Expense Write Guards

Local business rules checked before an expense is written.

DESIGN DECISION: Two checks, always in this order:

1. BALANCE (hard stop):
   An expense larger than the current overall balance is rejected.
   The caller cannot override it.

2. BUDGET (soft):
   If the category's spend this month plus the new amount would exceed
   the category's monthly limit, the caller must confirm before the
   write goes ahead. A confirmed override skips this check only.

IMPORTANT: Both checks read the snapshot of the most recent fetch. They
are advisory: concurrent writers from other sessions are not seen, and
nothing is enforced by the store.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from finance_tracker.config import ReportingSettings, get_settings
from finance_tracker.models.ledger import Budget, TransactionDraft
from finance_tracker.models.reports import AggregateSnapshot
from finance_tracker.reporting.aggregator import budget_limit_for
from finance_tracker.reporting.categories import normalize
from finance_tracker.reporting.numbers import ZERO, coerce_amount, format_amount


class ExpenseCheckOutcome(str, Enum):
    """Result of the pre-write checks for one expense."""
    OK = "ok"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    BUDGET_EXCEEDED = "budget_exceeded"


class ExpenseCheck(BaseModel):
    """What the guards found for one prospective expense."""
    model_config = ConfigDict(frozen=True)

    outcome: ExpenseCheckOutcome
    amount: Decimal
    category: str
    balance: Decimal
    spent_this_month: Decimal = ZERO
    limit: Optional[Decimal] = None
    budget_id: Optional[str] = None
    message: str = ""

    @property
    def allowed(self) -> bool:
        return self.outcome == ExpenseCheckOutcome.OK

    @property
    def projected_spend(self) -> Decimal:
        """Category spend this month if the expense were written."""
        return self.spent_this_month + self.amount


def has_sufficient_balance(amount: Decimal, balance: Decimal) -> bool:
    """An expense may use up the balance exactly, never more."""
    return amount <= balance


def would_exceed_budget(
    spent_this_month: Decimal,
    amount: Decimal,
    limit: Optional[Decimal],
) -> bool:
    if limit is None:
        return False
    return spent_this_month + amount > limit


def check_expense(
    draft: TransactionDraft,
    snapshot: AggregateSnapshot,
    budgets: Sequence[Budget],
    skip_budget_check: bool = False,
    settings: Optional[ReportingSettings] = None,
) -> ExpenseCheck:
    """
    Run the balance and budget checks for a prospective expense.

    Args:
        draft: The validated expense draft
        snapshot: Snapshot of the latest fetch (balance and monthly spend)
        budgets: Budget rows of the same fetch
        skip_budget_check: True once the user has confirmed an override
        settings: Category configuration (defaults to the app settings)

    Returns:
        ExpenseCheck with the first failing outcome, or OK
    """
    rules = settings or get_settings().reporting
    symbol = rules.currency_symbol
    amount = coerce_amount(draft.amount)
    category = normalize(
        draft.category,
        rules.expense_category_list,
        rules.expense_fallback_category,
    )
    spent = snapshot.per_category_monthly_spend.get(category, ZERO)
    # Same lookup as budget utilization: by normalized category
    budget = budget_limit_for(budgets, category)
    limit = coerce_amount(budget.amount) if budget else None

    common = dict(
        amount=amount,
        category=category,
        balance=snapshot.balance,
        spent_this_month=spent,
        limit=limit,
        budget_id=budget.id if budget else None,
    )

    if not has_sufficient_balance(amount, snapshot.balance):
        return ExpenseCheck(
            outcome=ExpenseCheckOutcome.INSUFFICIENT_BALANCE,
            message=(
                f"Insufficient balance: {format_amount(amount, symbol)} requested, "
                f"{format_amount(snapshot.balance, symbol)} available"
            ),
            **common,
        )

    if not skip_budget_check and would_exceed_budget(spent, amount, limit):
        return ExpenseCheck(
            outcome=ExpenseCheckOutcome.BUDGET_EXCEEDED,
            message=(
                f"{category} budget exceeded: {format_amount(spent + amount, symbol)} "
                f"of {format_amount(limit, symbol)} "
                "this month. Proceed anyway?"
            ),
            **common,
        )

    return ExpenseCheck(outcome=ExpenseCheckOutcome.OK, **common)


def check_amount_ceiling(amount: Decimal, ceiling: float) -> None:
    """
    Reject absurd amounts before any guard or write.

    Raises:
        ValueError: If the amount is above the configured ceiling
    """
    if amount > Decimal(str(ceiling)):
        raise ValueError(f"Amount {amount} exceeds the maximum of {ceiling}")
