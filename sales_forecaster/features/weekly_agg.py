"""
Weekly aggregation of delivered order items per product category.

Purpose
-------
This module collapses the three raw marketplace tables (orders, order items,
products) into one ``WeeklyRecord`` per (category, week).  That weekly-grain
table is the foundation for every downstream feature.

Key design choices
------------------
1.  **Delivered orders only** — items of cancelled, unavailable or in-transit
    orders are dropped at the join.  Only a delivered order is a completed sale.

2.  **Uncategorised products are excluded** — an item whose product has no
    category cannot be assigned to a series.  The number of dropped items is
    logged so the loss is visible.

3.  **Category normalization** — raw category slugs are lower-cased with
    underscores replaced by spaces, then looked up in an optional translation
    table.  A missing translation falls back to the normalized name.  The
    translation table is an immutable lookup built once by the caller and
    passed in; this module keeps no module-level state.

4.  **Week assignment** — an item belongs to the Monday-aligned ISO week of
    its order's *purchase* timestamp (not approval or delivery).

5.  **Top-N cap** — when ``top_n`` is set, categories are ranked by total item
    count over the whole dataset and only the top N are aggregated.  Ties are
    broken by category name so the cap is deterministic.

Input → Output
--------------
Input:  ``list[Order]``, ``list[OrderItem]``, ``list[Product]``
Output: ``list[WeeklyRecord]`` sorted by (week_start, category)
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Optional

from sales_forecaster.models.order import Order, OrderItem, Product
from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.utils.time_utils import iso_year_week, week_start

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 12
DELIVERED_STATUS = "delivered"

_EMPTY_LOOKUP: Mapping[str, str] = MappingProxyType({})


@dataclass(frozen=True)
class _SoldItem:
    """One delivered, categorised order item."""

    week_start: date
    category: str
    revenue: Decimal


# ── Category normalization ─────────────────────────────────────────────────────


def _clean(name: str) -> str:
    return name.replace("_", " ").strip().lower()


def build_translation_lookup(pairs: Iterable[tuple[str, str]]) -> Mapping[str, str]:
    """Build an immutable category translation lookup.

    Both sides are normalized: keys exactly as ``normalize_category`` will
    look them up, values with underscores replaced by spaces.

    Args:
        pairs: ``(source_name, translated_name)`` tuples, e.g. rows of the
               Olist ``product_category_name_translation.csv``.

    Returns:
        A read-only mapping.
    """
    table: dict[str, str] = {}
    for source, translated in pairs:
        key = _clean(source)
        value = translated.replace("_", " ").strip()
        if key and value:
            table[key] = value
    return MappingProxyType(table)


def normalize_category(
    name: str,
    translations: Optional[Mapping[str, str]] = None,
) -> str:
    """Normalize a raw category name and translate it when possible.

    ``"cama_mesa_banho"`` → ``"cama mesa banho"`` → ``"bed bath table"``
    (given a translation entry); unknown names keep the normalized form.
    """
    normalized = _clean(name)
    lookup = translations if translations is not None else _EMPTY_LOOKUP
    return lookup.get(normalized, normalized)


# ── Aggregation ────────────────────────────────────────────────────────────────


def aggregate_weekly_sales(
    orders: Iterable[Order],
    order_items: Iterable[OrderItem],
    products: Iterable[Product],
    top_n: Optional[int] = DEFAULT_TOP_N,
    translations: Optional[Mapping[str, str]] = None,
    delivered_status: str = DELIVERED_STATUS,
) -> list[WeeklyRecord]:
    """Aggregate delivered order items into weekly per-category totals.

    Args:
        orders:           Order headers.
        order_items:      Order line items (one unit each).
        products:         Product catalog.
        top_n:            Keep only the N categories with the most items over
                          the whole dataset.  ``None`` keeps every category.
        translations:     Normalized-name → display-name lookup.
        delivered_status: Order status that counts as a completed sale.

    Returns:
        ``WeeklyRecord`` list sorted by (week_start, category).  Empty input
        yields an empty list.
    """
    if top_n is not None and top_n < 1:
        raise ValueError(f"top_n must be >= 1 or None, got {top_n}")

    sold = _join_sold_items(orders, order_items, products, translations, delivered_status)
    if not sold:
        logger.info("No delivered, categorised items to aggregate")
        return []

    if top_n is not None:
        keep = _top_categories(sold, top_n)
        sold = [s for s in sold if s.category in keep]
        logger.info("Selected top %d of the available categories by item count", len(keep))

    records = _group_weekly(sold)
    logger.info(
        "Aggregated to %d weekly records for %d categories",
        len(records),
        len({r.category for r in records}),
    )
    return records


def aggregate_weekly_sales_all_categories(
    orders: Iterable[Order],
    order_items: Iterable[OrderItem],
    products: Iterable[Product],
    translations: Optional[Mapping[str, str]] = None,
    delivered_status: str = DELIVERED_STATUS,
) -> list[WeeklyRecord]:
    """Uncapped variant of ``aggregate_weekly_sales`` used by the global pipeline."""
    return aggregate_weekly_sales(
        orders,
        order_items,
        products,
        top_n=None,
        translations=translations,
        delivered_status=delivered_status,
    )


def category_item_counts(records: Iterable[WeeklyRecord]) -> list[tuple[str, int]]:
    """Total quantity per category, largest first (ties by name)."""
    totals: Counter[str] = Counter()
    for r in records:
        totals[r.category] += r.quantity
    return sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))


# ── Internal helpers ───────────────────────────────────────────────────────────


def _join_sold_items(
    orders: Iterable[Order],
    order_items: Iterable[OrderItem],
    products: Iterable[Product],
    translations: Optional[Mapping[str, str]],
    delivered_status: str,
) -> list[_SoldItem]:
    """Inner-join items to delivered orders and categorised products."""
    delivered: dict[str, Order] = {
        o.order_id: o for o in orders if o.order_status == delivered_status
    }
    categories: dict[str, str] = {
        p.product_id: p.product_category_name
        for p in products
        if p.product_category_name is not None and p.product_category_name.strip()
    }

    sold: list[_SoldItem] = []
    not_delivered = 0
    uncategorised = 0
    for item in order_items:
        order = delivered.get(item.order_id)
        if order is None:
            not_delivered += 1
            continue
        raw_category = categories.get(item.product_id)
        if raw_category is None:
            uncategorised += 1
            continue
        sold.append(_SoldItem(
            week_start=week_start(order.order_purchase_timestamp),
            category=normalize_category(raw_category, translations),
            revenue=item.price + item.freight_value,
        ))

    if not_delivered or uncategorised:
        logger.info(
            "Dropped %d items of non-delivered orders and %d items without a category",
            not_delivered, uncategorised,
        )
    return sold


def _top_categories(sold: list[_SoldItem], top_n: int) -> set[str]:
    counts = Counter(s.category for s in sold)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return {category for category, _ in ranked[:top_n]}


def _group_weekly(sold: list[_SoldItem]) -> list[WeeklyRecord]:
    quantity: dict[tuple[date, str], int] = defaultdict(int)
    revenue: dict[tuple[date, str], Decimal] = defaultdict(Decimal)

    for s in sold:
        key = (s.week_start, s.category)
        quantity[key] += 1
        revenue[key] += s.revenue

    records: list[WeeklyRecord] = []
    for key in sorted(quantity):
        week, category = key
        iso_year, iso_week = iso_year_week(week)
        records.append(WeeklyRecord(
            category=category,
            week_start=week,
            iso_year=iso_year,
            iso_week=iso_week,
            quantity=quantity[key],
            revenue=revenue[key],
            order_count=quantity[key],
        ))
    return records
