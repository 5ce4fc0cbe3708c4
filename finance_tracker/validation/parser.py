"""
Row Parser

Turns the untyped rows returned by the store into typed entities.

DESIGN DECISION: Parsing fails closed. A row that cannot become a valid
entity is dropped and reported, never passed on half-formed. Within a
row, a few fields degrade instead of failing:
- amount: missing or non-numeric -> 0
- category: missing -> "" (the normalizer maps it to the fallback)
- date: missing or unreadable -> None (counts in totals, not in windows)
A row is dropped when it is not a mapping, its amount is negative, or a
budget's period is anything but monthly.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from finance_tracker.models.ledger import (
    Budget,
    BudgetPeriod,
    Goal,
    LedgerTable,
    Transaction,
    TransactionKind,
)
from finance_tracker.reporting.buckets import as_local_naive
from finance_tracker.reporting.numbers import coerce_amount

OWNER_FIELD = "user_id"

_DATETIME = TypeAdapter(datetime)


class RowParseError(ValueError):
    """A stored row could not be turned into an entity."""

    def __init__(self, message: str, row_id: Optional[str] = None):
        super().__init__(message)
        self.row_id = row_id


@dataclass
class ParseOutcome:
    """Entities parsed from one collection, plus what was dropped and why."""
    items: list = field(default_factory=list)
    dropped: list[tuple[Optional[str], str]] = field(default_factory=list)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Read a stored timestamp.

    Accepts datetime/date objects and ISO 8601 / RFC 3339 strings, including
    5-digit fractional seconds (a trailing "Z" is read as UTC).
    Timezone-aware values are converted to naive local time. Returns None
    for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_local_naive(datetime.fromisoformat(text))
    except ValueError:
        pass
    # Date-times fromisoformat rejects before 3.11; bare numbers are not epochs here
    if "-" not in text or not any(sep in text for sep in ("T", " ")):
        return None
    try:
        return as_local_naive(_DATETIME.validate_python(text))
    except ValidationError:
        return None


def parse_date(value: Any) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _row_id(row: Mapping) -> Optional[str]:
    value = row.get("id")
    return str(value) if value not in (None, "") else None


def _require_mapping(row: Any) -> Mapping:
    if not isinstance(row, Mapping):
        raise RowParseError(f"Expected a mapping, got {type(row).__name__}")
    return row


def _amount(row: Mapping) -> Decimal:
    amount = coerce_amount(row.get("amount"))
    if amount < 0:
        raise RowParseError(f"Negative amount: {amount}", _row_id(row))
    return amount


def parse_transaction(row: Any, kind: TransactionKind) -> Transaction:
    """Parse an income or expense row. Raises RowParseError."""
    row = _require_mapping(row)
    try:
        return Transaction(
            id=_row_id(row),
            kind=kind,
            amount=_amount(row),
            category=_text(row.get("category")),
            date=parse_datetime(row.get("date")),
            title=_text(row.get("title")),
            owner=_text(row.get(OWNER_FIELD)) or None,
            created_at=parse_datetime(row.get("created_at")),
        )
    except ValidationError as e:
        raise RowParseError(str(e), _row_id(row)) from e


def parse_budget(row: Any) -> Budget:
    """Parse a budget row. Raises RowParseError."""
    row = _require_mapping(row)
    period_text = _text(row.get("period")).strip().lower() or BudgetPeriod.MONTHLY.value
    try:
        period = BudgetPeriod(period_text)
    except ValueError as e:
        raise RowParseError(f"Unsupported budget period: {period_text}", _row_id(row)) from e
    try:
        return Budget(
            id=_row_id(row),
            category=_text(row.get("category")),
            amount=_amount(row),
            period=period,
            end_date=parse_date(row.get("end_date")),
            owner=_text(row.get(OWNER_FIELD)) or None,
            created_at=parse_datetime(row.get("created_at")),
        )
    except ValidationError as e:
        raise RowParseError(str(e), _row_id(row)) from e


def _progress(value: Any) -> int:
    try:
        progress = int(float(_text(value).strip() or 0))
    except (ValueError, OverflowError):
        progress = 0
    return max(0, min(progress, 100))


def parse_goal(row: Any) -> Goal:
    """Parse a goal row. Raises RowParseError."""
    row = _require_mapping(row)
    try:
        return Goal(
            id=_row_id(row),
            title=_text(row.get("title")),
            progress_ratio=_progress(row.get("progress_ratio")),
            deadline=parse_date(row.get("deadline")),
            category=_text(row.get("category")) or Goal.model_fields["category"].default,
            owner=_text(row.get(OWNER_FIELD)) or None,
            created_at=parse_datetime(row.get("created_at")),
        )
    except ValidationError as e:
        raise RowParseError(str(e), _row_id(row)) from e


PARSERS: dict[LedgerTable, Callable[[Any], Any]] = {
    LedgerTable.INCOME: lambda row: parse_transaction(row, TransactionKind.INCOME),
    LedgerTable.EXPENSES: lambda row: parse_transaction(row, TransactionKind.EXPENSE),
    LedgerTable.BUDGETS: parse_budget,
    LedgerTable.GOALS: parse_goal,
}


def parse_rows(table: LedgerTable, rows: list) -> ParseOutcome:
    """Parse every row of a collection, collecting the ones that fail."""
    parser = PARSERS[table]
    outcome = ParseOutcome()
    for row in rows or []:
        try:
            outcome.items.append(parser(row))
        except RowParseError as e:
            outcome.dropped.append((e.row_id, str(e)))
    return outcome
