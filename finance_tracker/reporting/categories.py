"""
Category Normalizer

Maps free-form category strings onto an ordered canonical set.

Matching is exact but case-insensitive; the first canonical entry that
matches wins. Anything else (including empty or missing input) maps to
the fallback category. The function is total and idempotent.
"""

from typing import Any, Optional, Sequence, TypeVar

from finance_tracker.models.ledger import (
    DEFAULT_EXPENSE_CATEGORIES,
    EXPENSE_FALLBACK_CATEGORY,
)
from finance_tracker.reporting.numbers import ZERO

T = TypeVar("T")


def normalize(
    raw: Any,
    canonical_set: Sequence[str] = DEFAULT_EXPENSE_CATEGORIES,
    fallback: str = EXPENSE_FALLBACK_CATEGORY,
) -> str:
    """
    Return the canonical spelling of `raw`, or `fallback`.

    >>> normalize("food")
    'Food'
    >>> normalize("groceries")
    'Etc.'
    """
    if not isinstance(raw, str) or not raw:
        return fallback
    key = raw.casefold()
    for category in canonical_set:
        if category.casefold() == key:
            return category
    return fallback


def first_match(
    name: str,
    items: Sequence[T],
    key=lambda item: item,
) -> Optional[T]:
    """
    First item whose key equals `name` case-insensitively.

    Used for budget lookups, where the store does not enforce one budget
    per category: the first matching row wins.
    """
    if not name:
        return None
    wanted = name.casefold()
    for item in items:
        candidate = key(item)
        if isinstance(candidate, str) and candidate.casefold() == wanted:
            return item
    return None


def seeded_totals(canonical_set: Sequence[str], fallback: str) -> dict:
    """Zero totals for every canonical category (fallback included)."""
    totals = {category: ZERO for category in canonical_set}
    totals.setdefault(fallback, ZERO)
    return totals
