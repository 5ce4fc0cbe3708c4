"""
Validation Package

Boundary parsing of stored rows and the expense write-path guards.
"""

from finance_tracker.validation.guards import (
    ExpenseCheck,
    ExpenseCheckOutcome,
    check_amount_ceiling,
    check_expense,
)
from finance_tracker.validation.parser import (
    OWNER_FIELD,
    ParseOutcome,
    RowParseError,
    parse_budget,
    parse_datetime,
    parse_goal,
    parse_rows,
    parse_transaction,
)

__all__ = [
    "OWNER_FIELD",
    "ExpenseCheck",
    "ExpenseCheckOutcome",
    "ParseOutcome",
    "RowParseError",
    "check_amount_ceiling",
    "check_expense",
    "parse_budget",
    "parse_datetime",
    "parse_goal",
    "parse_rows",
    "parse_transaction",
]
