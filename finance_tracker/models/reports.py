"""
Report Models for Finance Tracker

Derived values computed from a fetch. None of these are ever persisted;
they are rebuilt on every refresh and replaced wholesale.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BucketMode(str, Enum):
    """
    Time-bucketing modes.

    WEEKLY is the current ISO week (Mon..Sun, up to now).
    ROLLING_WEEK is the last 7 days ending today.
    """
    WEEKLY = "weekly"
    ROLLING_WEEK = "rolling_week"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BalanceStatus(str, Enum):
    """Coarse health of the overall balance."""
    EMPTY = "empty"          # No income and no expenses recorded
    DEPLETED = "depleted"    # Balance at or below zero
    TIGHT = "tight"          # Balance under the tight ratio of income
    HEALTHY = "healthy"


class BucketTotal(BaseModel):
    """One (label, total) pair of a bucketed series."""
    model_config = ConfigDict(frozen=True)

    label: str
    total: Decimal = Decimal("0")


class BudgetUtilization(BaseModel):
    """
    Spend against a budget for the current month.

    `limit` is None when no budget matches the category; the
    percentage is then 0 and the category is never over budget.
    """
    model_config = ConfigDict(frozen=True)

    category: str
    budget_id: Optional[str] = None
    spent: Decimal = Decimal("0")
    limit: Optional[Decimal] = None
    percentage: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="min(spent / limit, 1) * 100"
    )
    raw_percentage: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="spent / limit * 100 without the clamp"
    )
    is_over_budget: bool = False

    @property
    def has_limit(self) -> bool:
        return self.limit is not None

    @property
    def remaining(self) -> Decimal:
        """Amount left before the limit (negative when over)."""
        if self.limit is None:
            return Decimal("0")
        return self.limit - self.spent


class BudgetStatusSummary(BaseModel):
    """Counts of budget rows by status."""
    model_config = ConfigDict(frozen=True)

    on_track: int = 0
    over: int = 0
    near_limit: int = 0


class GoalSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    completed: int = 0


class AggregateSnapshot(BaseModel):
    """
    Everything the screens display, derived from one fetch.

    CRITICAL: balance is always total_income - total_expenses exactly.
    """
    model_config = ConfigDict(frozen=True)

    computed_at: datetime
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    savings_rate: Decimal = Decimal("0")
    savings_on_target: bool = False
    expense_ratio: Decimal = Decimal("0")
    total_budgeted: Decimal = Decimal("0")
    budget_burn_rate: int = 0

    today_income: Decimal = Decimal("0")
    today_expenses: Decimal = Decimal("0")

    per_category_monthly_spend: dict[str, Decimal] = Field(default_factory=dict)
    per_category_total_spend: dict[str, Decimal] = Field(default_factory=dict)
    income_by_category: dict[str, Decimal] = Field(default_factory=dict)

    per_category_budget_utilization: dict[str, BudgetUtilization] = Field(
        default_factory=dict,
        description="One entry per canonical expense category"
    )
    budget_rows: list[BudgetUtilization] = Field(
        default_factory=list,
        description="One entry per budget row, in fetch order"
    )
    budget_status: BudgetStatusSummary = Field(default_factory=BudgetStatusSummary)
    balance_status: BalanceStatus = BalanceStatus.EMPTY
    goals: GoalSummary = Field(default_factory=GoalSummary)

    income_count: int = 0
    expense_count: int = 0
    budget_count: int = 0


# =============================================================================
# CHART MODELS
# =============================================================================

class PieSlice(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: Decimal
    color: str
    is_placeholder: bool = False


class ChartDataset(BaseModel):
    """One named series of a line or bar chart."""
    model_config = ConfigDict(frozen=True)

    name: str
    values: list[Decimal]
    color: str


class ChartSeries(BaseModel):
    """
    Labels plus one or more aligned datasets.

    `has_data` is False when the series is the zero placeholder.
    """
    model_config = ConfigDict(frozen=True)

    labels: list[str]
    datasets: list[ChartDataset]
    has_data: bool = True
