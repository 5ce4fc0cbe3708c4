"""
Row selection helpers shared by the storage implementations.

Backends without query support (Sheets, memory) filter and sort rows in
Python with these.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from finance_tracker.validation.parser import OWNER_FIELD, parse_datetime

DATE_COLUMNS = {"date", "created_at", "end_date", "deadline"}


def _sort_key(column: str):
    if column in DATE_COLUMNS:
        # Undated rows sort as the oldest
        return lambda row: parse_datetime(row.get(column)) or datetime.min
    return lambda row: str(row.get(column) or "")


def select_rows(
    rows: Iterable[dict[str, Any]],
    owner_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    order_by: Optional[str] = None,
    descending: bool = True,
) -> list[dict[str, Any]]:
    """
    Keep the owner's rows inside the optional date range, then sort.

    With a date range, rows whose `date` is missing or unreadable are
    left out.
    """
    selected = []
    for row in rows:
        if str(row.get(OWNER_FIELD) or "") != owner_id:
            continue
        if date_from is not None or date_to is not None:
            when = parse_datetime(row.get("date"))
            if when is None:
                continue
            if date_from is not None and when < date_from:
                continue
            if date_to is not None and when > date_to:
                continue
        selected.append(dict(row))

    if order_by:
        selected.sort(key=_sort_key(order_by), reverse=descending)
    return selected


def to_cell(value: Any) -> str:
    """Serialize a value for a text-only store (ISO dates, plain decimals)."""
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)
