"""
Reporting Package

Pure computations from typed ledger collections to displayed values:
category normalization, time bucketing, aggregation and chart shaping.
"""

from finance_tracker.reporting.aggregator import (
    aggregate,
    budget_limit_for,
    budget_status_summary,
    classify_balance,
    monthly_category_spend,
    monthly_tip,
    spent_this_month,
    utilization,
)
from finance_tracker.reporting.buckets import bucket, bucket_labels
from finance_tracker.reporting.categories import normalize
from finance_tracker.reporting.charts import (
    CategoryPalette,
    to_bar_series,
    to_budget_bar_series,
    to_line_series,
    to_pie_series,
    utilization_color,
)
from finance_tracker.reporting.numbers import coerce_amount

__all__ = [
    "CategoryPalette",
    "aggregate",
    "bucket",
    "bucket_labels",
    "budget_limit_for",
    "budget_status_summary",
    "classify_balance",
    "coerce_amount",
    "monthly_category_spend",
    "monthly_tip",
    "normalize",
    "spent_this_month",
    "to_bar_series",
    "to_budget_bar_series",
    "to_line_series",
    "to_pie_series",
    "utilization",
    "utilization_color",
]
