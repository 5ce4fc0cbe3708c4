"""
Core Ledger Models for Finance Tracker

These models are the typed form of the rows held by the external store.
Rows arrive as untyped mappings; the validation package turns them into
these entities before anything is aggregated.

DESIGN DECISION: Entities are frozen. A fetch produces immutable
snapshots, and every derived number is recomputed from them.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class LedgerTable(str, Enum):
    """Tables held by the external store."""
    INCOME = "income"
    EXPENSES = "expenses"
    BUDGETS = "budgets"
    GOALS = "goals"


class TransactionKind(str, Enum):
    """Direction of money for a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetPeriod(str, Enum):
    """
    Budget period.

    Only monthly budgets exist; rows with any other period are
    dropped at the boundary.
    """
    MONTHLY = "monthly"


DEFAULT_EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Food", "Transport", "Bills", "Shopping", "Etc.",
)
DEFAULT_INCOME_CATEGORIES: tuple[str, ...] = (
    "Salary", "Business", "Freelance", "Gift", "Others",
)
EXPENSE_FALLBACK_CATEGORY = "Etc."
INCOME_FALLBACK_CATEGORY = "Others"


# =============================================================================
# STORED ENTITIES
# =============================================================================

class Transaction(BaseModel):
    """
    An income or expense record.

    Owned by exactly one user. `date` may be None when the stored value
    was missing or unreadable; such a record still counts toward all-time
    totals but never falls inside a date window.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Opaque identifier, unique per owner"
    )
    kind: TransactionKind
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Non-negative amount"
    )
    category: str = Field(default="")
    date: Optional[datetime] = None
    title: str = Field(default="")
    owner: Optional[str] = None
    created_at: Optional[datetime] = None


class Budget(BaseModel):
    """
    A monthly spending limit for one category.

    CRITICAL: `category` is stored as the user typed it and is NOT
    normalized. Lookups against it must be case-insensitive, and
    uniqueness per category is not enforced by the store.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: Optional[str] = None
    category: str = Field(default="")
    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Monthly limit"
    )
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    end_date: Optional[date] = None
    owner: Optional[str] = None
    created_at: Optional[datetime] = None


class Goal(BaseModel):
    """A savings goal. Progress is user-entered, never derived."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: Optional[str] = None
    title: str = Field(default="")
    progress_ratio: int = Field(
        default=0,
        ge=0,
        le=100,
        description="User-entered progress percentage"
    )
    deadline: Optional[date] = None
    category: str = Field(default=EXPENSE_FALLBACK_CATEGORY)
    owner: Optional[str] = None
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def is_completed(self) -> bool:
        return self.progress_ratio >= 100


class LedgerData(BaseModel):
    """
    The typed result of one fetch cycle.

    Collections that failed to load are empty and listed in
    `failed_tables`; aggregation proceeds on whatever arrived.
    """
    model_config = ConfigDict(frozen=True)

    owner: Optional[str] = None
    fetched_at: datetime = Field(default_factory=datetime.now)
    income: tuple[Transaction, ...] = ()
    expenses: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()
    goals: tuple[Goal, ...] = ()
    failed_tables: tuple[LedgerTable, ...] = ()
    dropped_rows: int = Field(default=0, ge=0)

    @property
    def is_partial(self) -> bool:
        """True if at least one collection failed to load."""
        return len(self.failed_tables) > 0


# =============================================================================
# WRITE DRAFTS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction the user wants to record.

    Drafts are validated before any guard runs or any write is issued.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=50)


class BudgetDraft(BaseModel):
    """A budget to insert (no id) or replace (with id)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    end_date: Optional[date] = None


class GoalDraft(BaseModel):
    """A goal to insert (no id) or replace (with id)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    progress_ratio: int = Field(default=0, ge=0, le=100)
    deadline: Optional[date] = None
    category: str = Field(default=EXPENSE_FALLBACK_CATEGORY)
