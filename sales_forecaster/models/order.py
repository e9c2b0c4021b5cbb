"""
Raw marketplace records — orders, order line items and the product catalog.

These mirror the three Olist CSV exports the aggregator consumes.  Monetary
values are ``Decimal`` so revenue sums carry no float rounding into the
weekly cache.

All three models are frozen (immutable) after construction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Order(BaseModel):
    """One marketplace order.

    Attributes:
        order_id: Order identifier (joins to ``OrderItem.order_id``).
        customer_id: Customer identifier.
        order_status: Lifecycle status, e.g. ``"delivered"`` or ``"canceled"``.
        order_purchase_timestamp: When the customer placed the order.  This is
            the time point that assigns the order's items to a week.
        order_approved_at: Payment approval time, or ``None``.
        order_delivered_customer_date: Delivery time, or ``None``.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    customer_id: str = ""
    order_status: str
    order_purchase_timestamp: datetime
    order_approved_at: Optional[datetime] = None
    order_delivered_customer_date: Optional[datetime] = None


class OrderItem(BaseModel):
    """One line item of an order.  Each item counts as one unit sold.

    Attributes:
        order_id: Parent order.
        order_item_id: 1-based position within the order.
        product_id: Catalog product (joins to ``Product.product_id``).
        seller_id: Marketplace seller.
        price: Item price.
        freight_value: Freight charged for this item.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    order_item_id: int = 1
    product_id: str
    seller_id: str = ""
    price: Decimal
    freight_value: Decimal = Decimal("0")

    @field_validator("price", "freight_value")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Monetary values must be non-negative.")
        return v


class Product(BaseModel):
    """Catalog entry.

    ``product_category_name`` is ``None`` for uncategorised products; their
    items are excluded from aggregation.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_category_name: Optional[str] = None
    product_weight_g: Optional[Decimal] = None
    product_length_cm: Optional[Decimal] = None
