"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
    EXPENSE_FALLBACK_CATEGORY,
    INCOME_FALLBACK_CATEGORY,
    Budget,
    BudgetDraft,
    BudgetPeriod,
    Goal,
    GoalDraft,
    LedgerData,
    LedgerTable,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from finance_tracker.models.reports import (
    AggregateSnapshot,
    BalanceStatus,
    BucketMode,
    BucketTotal,
    BudgetStatusSummary,
    BudgetUtilization,
    ChartDataset,
    ChartSeries,
    GoalSummary,
    PieSlice,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_EXPENSE_CATEGORIES",
    "DEFAULT_INCOME_CATEGORIES",
    "EXPENSE_FALLBACK_CATEGORY",
    "INCOME_FALLBACK_CATEGORY",
    "Budget",
    "BudgetDraft",
    "BudgetPeriod",
    "Goal",
    "GoalDraft",
    "LedgerData",
    "LedgerTable",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    # Report models
    "AggregateSnapshot",
    "BalanceStatus",
    "BucketMode",
    "BucketTotal",
    "BudgetStatusSummary",
    "BudgetUtilization",
    "ChartDataset",
    "ChartSeries",
    "GoalSummary",
    "PieSlice",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
