"""
Feature registry for the weekly sales forecaster.

This module is the single source of truth for every column of a ``FeatureRow``.
``builder.FeatureRow`` declares its fields in the same order, and
``dataset_builder`` derives the Parquet schema from this list.

Groups
------
calendar    Week of year, month, quarter and retail-calendar flags.
lag         Quantity sold k weeks before the row's week.
rolling     Four-week trailing mean of quantity.
trend       Global week index from the snapshot epoch.
seasonal    Past-only mean of same-month quantity.
identifier  Category name (a categorical model input).
target      Actual quantity sold in the row's week.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FeatureSpec:
    """Specification for a single feature (or identifier/target) column.

    Attributes:
        name: Column name, identical to the ``FeatureRow`` field.
        pa_type: PyArrow type string ("int32", "float64", "bool", "utf8").
        group: Logical group for filtering and documentation.
        description: Human-readable explanation of what the column captures.
        is_target: True for the label. Never a model input.
        requires_history_weeks: Prior weeks needed before the value is exact
            rather than a zero or fallback.
    """

    name: str
    pa_type: str
    group: str
    description: str
    is_target: bool = False
    requires_history_weeks: int = 0


# ── Registry ──────────────────────────────────────────────────────────────────
# Order here determines column order in FeatureRow and the Parquet file.

FEATURE_REGISTRY: list[FeatureSpec] = [
    FeatureSpec("week_of_year",          "int32",   "calendar", "ISO week number of week_start."),
    FeatureSpec("month",                 "int32",   "calendar", "Calendar month of week_start (1-12)."),
    FeatureSpec("quarter",               "int32",   "calendar", "Calendar quarter of week_start (1-4)."),
    FeatureSpec("is_black_friday_week",  "bool",    "calendar", "week_start falls on November 20-27."),
    FeatureSpec("is_holiday_season",     "bool",    "calendar", "week_start falls in November or December."),

    FeatureSpec("lag_1", "float64", "lag", "Quantity one week earlier (0 before history).",    requires_history_weeks=1),
    FeatureSpec("lag_2", "float64", "lag", "Quantity two weeks earlier (0 before history).",   requires_history_weeks=2),
    FeatureSpec("lag_3", "float64", "lag", "Quantity three weeks earlier (0 before history).", requires_history_weeks=3),
    FeatureSpec("lag_4", "float64", "lag", "Quantity four weeks earlier (0 before history).",  requires_history_weeks=4),

    FeatureSpec("rolling_avg_4", "float64", "rolling",
                "Mean quantity over the four prior weeks; past non-zero mean until four weeks exist.",
                requires_history_weeks=4),

    FeatureSpec("trend", "int32", "trend", "Whole weeks since the earliest week of the snapshot."),

    FeatureSpec("category_seasonal_avg", "float64", "seasonal",
                "Mean non-zero quantity of earlier weeks in the same month (0 without history)."),

    FeatureSpec("category", "utf8", "identifier", "Normalized category name."),

    FeatureSpec("label", "float64", "target", "Quantity sold in this week.", is_target=True),
]


# ── Accessors ─────────────────────────────────────────────────────────────────

def feature_names(group: str | None = None) -> list[str]:
    """Return column names, optionally filtered to a single group."""
    if group is None:
        return [f.name for f in FEATURE_REGISTRY]
    return [f.name for f in FEATURE_REGISTRY if f.group == group]


def model_input_names() -> list[str]:
    """Every column a trainer may use (everything except the label)."""
    return [f.name for f in FEATURE_REGISTRY if not f.is_target]


def numeric_feature_names() -> list[str]:
    """Model inputs that are numeric (booleans count as 0/1)."""
    return [
        f.name for f in FEATURE_REGISTRY
        if not f.is_target and f.pa_type != "utf8"
    ]


def target_name() -> str:
    return next(f.name for f in FEATURE_REGISTRY if f.is_target)


def get_spec(name: str) -> FeatureSpec:
    """Return the FeatureSpec for ``name``.

    Raises:
        KeyError: If ``name`` is not in the registry.
    """
    for spec in FEATURE_REGISTRY:
        if spec.name == name:
            return spec
    raise KeyError(f"Feature '{name}' not found in registry.")
