"""
CSV loaders for the Olist Brazilian e-commerce exports.

Files (comma delimited, header row, optionally quoted):

  olist_orders_dataset.csv
    Required: order_id, order_status, order_purchase_timestamp
    Optional: customer_id, order_approved_at, order_delivered_customer_date

  olist_order_items_dataset.csv
    Required: order_id, product_id, price
    Optional: order_item_id, seller_id, freight_value

  olist_products_dataset.csv
    Required: product_id
    Optional: product_category_name, product_weight_g, product_length_cm

  product_category_name_translation.csv
    Required: product_category_name, product_category_name_english

Empty optional fields become None (or the model default).  Timestamps are
``YYYY-MM-DD HH:MM:SS``.  Every row is validated; if any row fails, one
``ValueError`` lists the first 10 failures.  A missing translation file is
not an error: categories then keep their normalized source names.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Optional, TypeVar

from pydantic import ValidationError

from sales_forecaster.config import DataConfig
from sales_forecaster.features.weekly_agg import build_translation_lookup
from sales_forecaster.models.order import Order, OrderItem, Product
from sales_forecaster.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORDER_COLUMNS = frozenset({"order_id", "order_status", "order_purchase_timestamp"})
ORDER_ITEM_COLUMNS = frozenset({"order_id", "product_id", "price"})
PRODUCT_COLUMNS = frozenset({"product_id"})
TRANSLATION_COLUMNS = frozenset({"product_category_name", "product_category_name_english"})

_MAX_ERRORS_SHOWN = 10


@dataclass(frozen=True)
class OlistDataset:
    """All raw inputs of one aggregation run."""

    orders: list[Order]
    order_items: list[OrderItem]
    products: list[Product]
    translations: Mapping[str, str]


# ── Public loaders ─────────────────────────────────────────────────────────────


def load_orders(path: Path) -> list[Order]:
    return _parse_rows(path, _read_csv(path, ORDER_COLUMNS), _row_to_order)


def load_order_items(path: Path) -> list[OrderItem]:
    return _parse_rows(path, _read_csv(path, ORDER_ITEM_COLUMNS), _row_to_order_item)


def load_products(path: Path) -> list[Product]:
    return _parse_rows(path, _read_csv(path, PRODUCT_COLUMNS), _row_to_product)


def load_category_translations(path: Path) -> Mapping[str, str]:
    """Load the category translation table as an immutable lookup.

    Returns an empty lookup when ``path`` does not exist.
    """
    if not path.exists():
        logger.info("No category translation file at %s; using source names.", path)
        return MappingProxyType({})
    rows = _read_csv(path, TRANSLATION_COLUMNS)
    lookup = build_translation_lookup(
        (row["product_category_name"], row["product_category_name_english"]) for row in rows
    )
    logger.info("Loaded %d category translations from %s", len(lookup), path.name)
    return lookup


def load_olist_dataset(config: DataConfig) -> OlistDataset:
    """Load every raw file named by ``config`` from ``config.raw_dir``.

    Raises:
        FileNotFoundError: If the orders, items or products file is missing.
        ValueError: On missing columns or invalid rows.
    """
    raw = Path(config.raw_dir)
    return OlistDataset(
        orders=load_orders(raw / config.orders_file),
        order_items=load_order_items(raw / config.order_items_file),
        products=load_products(raw / config.products_file),
        translations=load_category_translations(raw / config.translation_file),
    )


# ── Private helpers ────────────────────────────────────────────────────────────


def _read_csv(path: Path, required: frozenset[str]) -> list[dict[str, str]]:
    """Read a CSV file into row dicts after checking the header.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the header is missing or lacks required columns.
    """
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError(f"CSV file is empty or has no header row: {path}")

        actual_cols = set(reader.fieldnames)
        missing = required - actual_cols
        if missing:
            raise ValueError(
                f"CSV missing required columns: {sorted(missing)}\n"
                f"Found columns: {sorted(actual_cols)}"
            )
        rows = list(reader)

    if not rows:
        logger.warning("CSV is empty (header only): %s", path)
    return rows


def _parse_rows(
    path: Path,
    rows: list[dict[str, str]],
    convert: Callable[[dict[str, str]], T],
) -> list[T]:
    """Convert every row, collecting failures into a single ``ValueError``."""
    parsed: list[T] = []
    errors: list[tuple[int, str]] = []

    for i, row in enumerate(rows):
        line_no = i + 2  # 1-based, skip header row
        try:
            parsed.append(convert(row))
        except (ValueError, ValidationError) as exc:
            errors.append((line_no, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:_MAX_ERRORS_SHOWN])
        suffix = (
            f"\n  … and {len(errors) - _MAX_ERRORS_SHOWN} more"
            if len(errors) > _MAX_ERRORS_SHOWN else ""
        )
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix}"
        )

    logger.info("Parsed %d rows from %s", len(parsed), path.name)
    return parsed


def _row_to_order(row: dict[str, str]) -> Order:
    return Order(
        order_id=_req(row, "order_id"),
        customer_id=_opt(row, "customer_id") or "",
        order_status=_req(row, "order_status"),
        order_purchase_timestamp=parse_timestamp(_req(row, "order_purchase_timestamp")),
        order_approved_at=_opt_timestamp(row, "order_approved_at"),
        order_delivered_customer_date=_opt_timestamp(row, "order_delivered_customer_date"),
    )


def _row_to_order_item(row: dict[str, str]) -> OrderItem:
    item_id = _opt(row, "order_item_id")
    return OrderItem(
        order_id=_req(row, "order_id"),
        order_item_id=int(item_id) if item_id else 1,
        product_id=_req(row, "product_id"),
        seller_id=_opt(row, "seller_id") or "",
        price=_req(row, "price"),
        freight_value=_opt(row, "freight_value") or "0",
    )


def _row_to_product(row: dict[str, str]) -> Product:
    return Product(
        product_id=_req(row, "product_id"),
        product_category_name=_opt(row, "product_category_name"),
        product_weight_g=_opt(row, "product_weight_g"),
        product_length_cm=_opt(row, "product_length_cm"),
    )


def _req(row: dict[str, str], key: str) -> str:
    """Return a required string field, stripped; raise if empty."""
    v = (row.get(key) or "").strip()
    if not v:
        raise ValueError(f"Required field '{key}' is empty.")
    return v


def _opt(row: dict[str, str], key: str) -> Optional[str]:
    """Return an optional string field, or None if absent/empty."""
    v = (row.get(key) or "").strip()
    return v if v else None


def _opt_timestamp(row: dict[str, str], key: str) -> Optional[datetime]:
    v = _opt(row, key)
    return parse_timestamp(v) if v is not None else None
