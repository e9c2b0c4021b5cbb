"""
Feature selection and encoding for the LightGBM forecaster.

Model inputs are every registry column except the label.  The string
``category`` column is encoded to an integer code and declared categorical so
LightGBM splits on it without assuming an order.

Category codes
--------------
Codes are assigned from the sorted category names seen in the *training* rows
(0, 1, 2, ...), stored with the model, and reused at inference.  A category
unseen at training time encodes to -1, which LightGBM treats as missing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.features.registry import model_input_names

CATEGORY_COL = "category"
UNKNOWN_CATEGORY = -1

TRAINING_FEATURE_COLS: list[str] = model_input_names()
CATEGORICAL_FEATURE_COLS: list[str] = [CATEGORY_COL]


def build_category_encoding(rows: Iterable[FeatureRow]) -> dict[str, int]:
    """Sorted category name → integer code."""
    return {name: code for code, name in enumerate(sorted({r.category for r in rows}))}


def encode_value(row: FeatureRow, col: str, category_codes: Mapping[str, int]) -> float:
    if col == CATEGORY_COL:
        return float(category_codes.get(row.category, UNKNOWN_CATEGORY))
    return float(getattr(row, col))


def build_feature_matrix(
    rows: list[FeatureRow],
    category_codes: Mapping[str, int],
    feature_cols: list[str] | None = None,
) -> list[list[float]]:
    """Build a float matrix (outer = rows, inner = features) from feature rows."""
    cols = feature_cols or TRAINING_FEATURE_COLS
    return [[encode_value(r, c, category_codes) for c in cols] for r in rows]
