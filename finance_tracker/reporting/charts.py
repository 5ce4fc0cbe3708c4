"""
Chart Data Adapter

Shapes aggregator output into the label/series/color structures chart
widgets consume (pie, line, bar).

CRITICAL: Chart widgets must never receive an empty dataset. When there
is nothing to plot, pies get one placeholder slice and line/bar charts
get a single zero-valued point.
"""

from decimal import Decimal
from typing import Mapping, Optional, Sequence

from finance_tracker.models.reports import (
    BucketTotal,
    BudgetUtilization,
    ChartDataset,
    ChartSeries,
    PieSlice,
)
from finance_tracker.reporting.numbers import ZERO

# Brand colors
GREEN = "#3A6B55"
CORAL = "#D48380"
GOLD = "#C9A84C"
PURPLE = "#7C6FCD"
SKY = "#4A9FC7"
NEUTRAL = "#E4DDD5"

CYCLE_COLORS = [GREEN, CORAL, GOLD, PURPLE, SKY, "#E8845A", "#56A0A0"]

CATEGORY_COLORS = {
    # expenses
    "food": "#F2994A",
    "transport": "#56CCF2",
    "bills": "#EB5757",
    "shopping": "#9B51E0",
    "etc.": GREEN,
    # income
    "salary": GREEN,
    "business": "#F2994A",
    "freelance": "#2D9CDB",
    "gift": "#EB5757",
    "others": "#9B51E0",
}

PLACEHOLDER_LABEL = "No data"
EMPTY_AXIS_LABEL = "—"


class CategoryPalette:
    """
    Deterministic category -> color mapping for one session.

    Known categories have fixed colors (case-insensitive). Any other
    category takes the next color of the cycle the first time it is seen
    and keeps it for the palette's lifetime.
    """

    def __init__(
        self,
        fixed: Optional[Mapping[str, str]] = None,
        cycle: Sequence[str] = CYCLE_COLORS,
    ):
        fixed = CATEGORY_COLORS if fixed is None else fixed
        self._fixed = {name.casefold(): color for name, color in fixed.items()}
        self._cycle = list(cycle)
        self._assigned: dict[str, str] = {}

    def color_for(self, category: str) -> str:
        key = (category or "").casefold()
        if key in self._fixed:
            return self._fixed[key]
        if key not in self._assigned:
            self._assigned[key] = self._cycle[len(self._assigned) % len(self._cycle)]
        return self._assigned[key]


def utilization_color(item: BudgetUtilization, near_limit_percent: float = 75.0) -> str:
    """Coral when over budget, gold past the near-limit mark, green otherwise."""
    if item.is_over_budget:
        return CORAL
    if item.percentage > Decimal(str(near_limit_percent)):
        return GOLD
    return GREEN


def to_pie_series(
    category_totals: Mapping[str, Decimal],
    palette: Optional[CategoryPalette] = None,
) -> list[PieSlice]:
    """
    One slice per category with a positive total, in mapping order.

    Zero-valued categories have no area and are left out; if nothing is
    left, a single placeholder slice is returned.
    """
    palette = palette or CategoryPalette()
    slices = [
        PieSlice(label=label, value=value, color=palette.color_for(label))
        for label, value in category_totals.items()
        if value > 0
    ]
    if not slices:
        return [
            PieSlice(
                label=PLACEHOLDER_LABEL,
                value=Decimal("1"),
                color=NEUTRAL,
                is_placeholder=True,
            )
        ]
    return slices


def _placeholder_series(names: Sequence[str], colors: Sequence[str]) -> ChartSeries:
    return ChartSeries(
        labels=[EMPTY_AXIS_LABEL],
        datasets=[
            ChartDataset(name=name, values=[ZERO], color=color)
            for name, color in zip(names, colors)
        ],
        has_data=False,
    )


def to_line_series(
    series: Mapping[str, Sequence[BucketTotal]],
    colors: Optional[Mapping[str, str]] = None,
) -> ChartSeries:
    """
    Aligned line datasets from bucketed series sharing the same labels.

    Example:
        to_line_series({"Income": income_buckets, "Expenses": expense_buckets})
    """
    colors = colors or {}
    resolved = {
        name: colors.get(name) or CYCLE_COLORS[index % len(CYCLE_COLORS)]
        for index, name in enumerate(series)
    }

    names = list(series)
    if not names:
        return _placeholder_series(["Total"], [GREEN])

    labels = [item.label for item in series[names[0]]]
    datasets = [
        ChartDataset(
            name=name,
            values=[item.total for item in series[name]],
            color=resolved[name],
        )
        for name in names
    ]
    for dataset in datasets:
        if len(dataset.values) != len(labels):
            raise ValueError(
                f"Series '{dataset.name}' has {len(dataset.values)} points, expected {len(labels)}"
            )

    has_values = any(value != 0 for dataset in datasets for value in dataset.values)
    if not labels or not has_values:
        return _placeholder_series(names, [resolved[name] for name in names])

    return ChartSeries(labels=labels, datasets=datasets)


def to_bar_series(
    bucketed: Sequence[BucketTotal],
    name: str = "Expenses",
    color: str = CORAL,
) -> ChartSeries:
    """Single-dataset bar chart from one bucketed series."""
    if not bucketed or all(item.total == 0 for item in bucketed):
        return _placeholder_series([name], [color])
    return ChartSeries(
        labels=[item.label for item in bucketed],
        datasets=[ChartDataset(name=name, values=[item.total for item in bucketed], color=color)],
    )


def to_budget_bar_series(
    rows: Sequence[BudgetUtilization],
    label_length: int = 4,
) -> ChartSeries:
    """
    Grouped bars of monthly limit vs. spent, one group per budget row.

    Labels are the budget categories truncated to `label_length` characters.
    """
    if not rows:
        return _placeholder_series(["Limit", "Spent"], [GREEN, CORAL])

    return ChartSeries(
        labels=[row.category[:label_length] for row in rows],
        datasets=[
            ChartDataset(name="Limit", values=[row.limit or ZERO for row in rows], color=GREEN),
            ChartDataset(name="Spent", values=[row.spent for row in rows], color=CORAL),
        ],
    )
