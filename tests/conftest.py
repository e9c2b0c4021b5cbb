"""
Shared pytest fixtures and factories for the sales forecaster test suite.

Provides:
  - ``make_week`` / ``make_series``: ``WeeklyRecord`` factories.
  - ``make_row``: ``FeatureRow`` factory with neutral defaults.
  - ``app_config``: an ``AppConfig`` whose paths point into ``tmp_path``.
  - Sample raw Olist objects for aggregation tests.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from sales_forecaster.config import AppConfig, DataConfig, ModelConfig
from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.models.order import Order, OrderItem, Product
from sales_forecaster.models.weekly import WeeklyRecord

# Monday.
START = date(2017, 1, 2)


# ── Factories ─────────────────────────────────────────────────────────────────

def _make_week(category: str, week_start: date, quantity: int = 0) -> WeeklyRecord:
    iso = week_start.isocalendar()
    return WeeklyRecord(
        category=category,
        week_start=week_start,
        iso_year=iso.year,
        iso_week=iso.week,
        quantity=quantity,
        revenue=Decimal(quantity) * Decimal("10"),
        order_count=quantity,
    )


def _make_series(
    category: str,
    quantities: list[int],
    start: date = START,
) -> list[WeeklyRecord]:
    return [
        _make_week(category, start + timedelta(weeks=i), q)
        for i, q in enumerate(quantities)
    ]


def _make_row(trend: int, label: float = 0.0, category: str = "toys", **overrides) -> FeatureRow:
    fields = dict(
        week_of_year=1,
        month=1,
        quarter=1,
        is_black_friday_week=False,
        is_holiday_season=False,
        lag_1=0.0,
        lag_2=0.0,
        lag_3=0.0,
        lag_4=0.0,
        rolling_avg_4=0.0,
        trend=trend,
        category_seasonal_avg=0.0,
        category=category,
        label=label,
    )
    fields.update(overrides)
    return FeatureRow(**fields)


@pytest.fixture
def make_week():
    return _make_week


@pytest.fixture
def make_series():
    return _make_series


@pytest.fixture
def make_row():
    return _make_row


# ── Config ────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Default config with every path redirected under ``tmp_path``.

    The model is kept small so LightGBM-backed tests stay fast.
    """
    return AppConfig(
        data=DataConfig(
            raw_dir=str(tmp_path / "raw"),
            processed_dir=str(tmp_path / "processed"),
            outputs_dir=str(tmp_path / "outputs"),
        ),
        model=ModelConfig(
            n_estimators=20,
            num_leaves=7,
            min_child_samples=2,
            artifact_dir=str(tmp_path / "models"),
        ),
    )


# ── Raw Olist objects ─────────────────────────────────────────────────────────

@pytest.fixture
def sample_orders() -> list[Order]:
    """Three delivered orders in two weeks plus one canceled order."""
    return [
        Order(order_id="o1", order_status="delivered",
              order_purchase_timestamp=datetime(2017, 1, 2, 9, 30)),
        Order(order_id="o2", order_status="delivered",
              order_purchase_timestamp=datetime(2017, 1, 8, 23, 59)),
        Order(order_id="o3", order_status="delivered",
              order_purchase_timestamp=datetime(2017, 1, 9, 0, 1)),
        Order(order_id="o4", order_status="canceled",
              order_purchase_timestamp=datetime(2017, 1, 3, 12, 0)),
    ]


@pytest.fixture
def sample_products() -> list[Product]:
    return [
        Product(product_id="p_bed", product_category_name="cama_mesa_banho"),
        Product(product_id="p_toy", product_category_name="brinquedos"),
        Product(product_id="p_none", product_category_name=None),
    ]


@pytest.fixture
def sample_items() -> list[OrderItem]:
    return [
        OrderItem(order_id="o1", order_item_id=1, product_id="p_bed",
                  price=Decimal("100.00"), freight_value=Decimal("10.00")),
        OrderItem(order_id="o1", order_item_id=2, product_id="p_bed",
                  price=Decimal("50.00"), freight_value=Decimal("5.00")),
        OrderItem(order_id="o2", order_item_id=1, product_id="p_toy",
                  price=Decimal("20.00"), freight_value=Decimal("2.00")),
        OrderItem(order_id="o3", order_item_id=1, product_id="p_bed",
                  price=Decimal("30.00"), freight_value=Decimal("3.00")),
        OrderItem(order_id="o3", order_item_id=2, product_id="p_none",
                  price=Decimal("5.00")),
        OrderItem(order_id="o4", order_item_id=1, product_id="p_toy",
                  price=Decimal("999.00")),
    ]
