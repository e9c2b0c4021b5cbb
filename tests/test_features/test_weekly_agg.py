"""
Tests for weekly per-category aggregation.

What we test
------------
1. Category normalization and translation lookup.
2. Join/filter rules — only delivered orders and categorised products count.
3. Week bucketing — purchases are assigned to the Monday of their ISO week.
4. Totals — quantity, revenue (price + freight) and order count (one per item).
5. Top-N category cap and tie-breaking.
6. Edge cases — empty input, invalid top_n.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from sales_forecaster.features.weekly_agg import (
    aggregate_weekly_sales,
    aggregate_weekly_sales_all_categories,
    build_translation_lookup,
    category_item_counts,
    normalize_category,
)


# ── Normalization ──────────────────────────────────────────────────────────────

def test_normalize_replaces_underscores_and_lowercases() -> None:
    assert normalize_category("  Cama_Mesa_Banho ") == "cama mesa banho"


def test_normalize_translates_known_names() -> None:
    lookup = build_translation_lookup([("cama_mesa_banho", "bed_bath_table")])
    assert normalize_category("cama_mesa_banho", lookup) == "bed bath table"


def test_normalize_keeps_unknown_names() -> None:
    lookup = build_translation_lookup([("cama_mesa_banho", "bed_bath_table")])
    assert normalize_category("brinquedos", lookup) == "brinquedos"


def test_translation_lookup_is_read_only() -> None:
    lookup = build_translation_lookup([("a", "b")])
    with pytest.raises(TypeError):
        lookup["c"] = "d"  # type: ignore[index]


def test_translation_lookup_skips_blank_entries() -> None:
    lookup = build_translation_lookup([("", "x"), ("a", "  ")])
    assert len(lookup) == 0


# ── Aggregation ────────────────────────────────────────────────────────────────

class TestAggregateWeeklySales:
    def test_records_sorted_by_week_then_category(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=None)
        keys = [(r.week_start, r.category) for r in records]
        assert keys == [
            (date(2017, 1, 2), "brinquedos"),
            (date(2017, 1, 2), "cama mesa banho"),
            (date(2017, 1, 9), "cama mesa banho"),
        ]

    def test_sunday_purchase_belongs_to_preceding_monday(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=None)
        toys = [r for r in records if r.category == "brinquedos"]
        assert [r.week_start for r in toys] == [date(2017, 1, 2)]

    def test_every_week_start_is_monday(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=None)
        assert all(r.week_start.weekday() == 0 for r in records)

    def test_totals(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=None)
        first_bed = next(r for r in records if r.category == "cama mesa banho")
        assert first_bed.quantity == 2
        assert first_bed.revenue == Decimal("165.00")
        assert first_bed.order_count == first_bed.quantity

    def test_order_count_counts_items_not_orders(self, sample_orders, sample_products):
        from sales_forecaster.models.order import OrderItem

        items = [
            OrderItem(order_id="o1", product_id="p_toy", price=Decimal("10"))
            for _ in range(3)
        ]
        (record,) = aggregate_weekly_sales(sample_orders, items, sample_products, top_n=None)
        assert record.category == "brinquedos"
        assert record.quantity == 3
        assert record.order_count == 3

    def test_canceled_and_uncategorised_items_are_dropped(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=None)
        assert sum(r.quantity for r in records) == 4
        assert all(r.revenue < Decimal("999") for r in records)

    def test_translations_applied(self, sample_orders, sample_items, sample_products):
        lookup = build_translation_lookup([("cama_mesa_banho", "bed_bath_table")])
        records = aggregate_weekly_sales(
            sample_orders, sample_items, sample_products, top_n=None, translations=lookup,
        )
        assert {r.category for r in records} == {"bed bath table", "brinquedos"}

    def test_top_n_keeps_largest_categories(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=1)
        assert {r.category for r in records} == {"cama mesa banho"}

    def test_top_n_tie_broken_by_name(self, sample_orders, sample_products):
        from sales_forecaster.models.order import OrderItem

        items = [
            OrderItem(order_id="o1", product_id="p_bed", price=Decimal("1")),
            OrderItem(order_id="o2", product_id="p_toy", price=Decimal("1")),
        ]
        records = aggregate_weekly_sales(sample_orders, items, sample_products, top_n=1)
        assert {r.category for r in records} == {"brinquedos"}

    def test_all_categories_variant_is_uncapped(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales_all_categories(sample_orders, sample_items, sample_products)
        assert len({r.category for r in records}) == 2

    def test_custom_delivered_status(self, sample_orders, sample_items, sample_products):
        records = aggregate_weekly_sales(
            sample_orders, sample_items, sample_products, top_n=None, delivered_status="canceled",
        )
        assert [(r.category, r.quantity) for r in records] == [("brinquedos", 1)]

    def test_empty_input_returns_empty(self):
        assert aggregate_weekly_sales([], [], []) == []

    def test_invalid_top_n_raises(self, sample_orders, sample_items, sample_products):
        with pytest.raises(ValueError, match="top_n"):
            aggregate_weekly_sales(sample_orders, sample_items, sample_products, top_n=0)


def test_category_item_counts_largest_first(make_series) -> None:
    records = make_series("a", [1, 1]) + make_series("b", [5]) + make_series("c", [2])
    assert category_item_counts(records) == [("b", 5), ("a", 2), ("c", 2)]
