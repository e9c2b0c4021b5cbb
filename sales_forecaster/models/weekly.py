"""
Weekly per-category sales record — the unit every downstream stage consumes.

``WeeklyRecord`` is keyed by ``(category, week_start)``.  ``week_start`` is
always a Monday; ``iso_year`` / ``iso_week`` are derived from it per ISO 8601,
so the three date fields can never disagree.

Records synthesized by the gap filler carry zero quantity, revenue and order
count — they are indistinguishable from a real zero-sales week, which is the
point: lag features must see a calendar-accurate series.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class WeeklyRecord(BaseModel):
    """Weekly sales totals for one category.

    Attributes:
        category: Normalized (and optionally translated) category name.
        week_start: Monday of the ISO week.
        iso_year: ISO 8601 year of ``week_start``.
        iso_week: ISO 8601 week number of ``week_start``.
        quantity: Items sold (one per order line item).
        revenue: Sum of price + freight over the items.
        order_count: Order lines (items) in the week; equals ``quantity``
            for aggregated weeks and is 0 for gap weeks.
    """

    model_config = ConfigDict(frozen=True)

    category: str
    week_start: date
    iso_year: int
    iso_week: int
    quantity: int = 0
    revenue: Decimal = Decimal("0")
    order_count: int = 0

    @field_validator("week_start")
    @classmethod
    def validate_monday(cls, v: date) -> date:
        if v.weekday() != 0:
            raise ValueError(f"week_start must be a Monday, got {v} ({v.strftime('%A')}).")
        return v

    @field_validator("quantity", "order_count")
    @classmethod
    def validate_counts_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Quantity and order count must be non-negative.")
        return v

    @field_validator("revenue")
    @classmethod
    def validate_revenue_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Revenue must be non-negative.")
        return v

    @model_validator(mode="after")
    def validate_iso_fields(self) -> "WeeklyRecord":
        iso = self.week_start.isocalendar()
        if (self.iso_year, self.iso_week) != (iso.year, iso.week):
            raise ValueError(
                f"iso_year/iso_week ({self.iso_year}-W{self.iso_week:02d}) do not match "
                f"week_start {self.week_start} ({iso.year}-W{iso.week:02d})."
            )
        return self

    @classmethod
    def empty_week(cls, category: str, week_start: date) -> "WeeklyRecord":
        """Zero-valued record for a week with no sales."""
        iso = week_start.isocalendar()
        return cls(
            category=category,
            week_start=week_start,
            iso_year=iso.year,
            iso_week=iso.week,
        )
