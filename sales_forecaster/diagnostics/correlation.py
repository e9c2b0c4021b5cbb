"""
Pearson correlation, two ways.

``pearson_correlation()`` is the direct two-pass formula over materialized
sequences.  ``RunningCorrelation`` accumulates the same statistic one pair at
a time (Welford-style co-moment updates) so a column can be scanned without
holding it in memory.  Both return 0.0 for a constant column, where r is
undefined; the audit treats "no variance" as "no correlation".
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Optional

from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.features.registry import numeric_feature_names, target_name


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson r of two equal-length sequences (0.0 if either has no variance).

    Raises:
        ValueError: If the sequences differ in length.
    """
    if len(xs) != len(ys):
        raise ValueError(f"Sequences differ in length: {len(xs)} vs {len(ys)}")
    n = len(xs)
    if n < 2:
        return 0.0

    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)
    if var_x == 0 or var_y == 0:
        return 0.0
    return cov / math.sqrt(var_x * var_y)


class RunningCorrelation:
    """Incremental Pearson correlation."""

    def __init__(self) -> None:
        self.n = 0
        self._mean_x = 0.0
        self._mean_y = 0.0
        self._m2_x = 0.0
        self._m2_y = 0.0
        self._c_xy = 0.0

    def add(self, x: float, y: float) -> None:
        self.n += 1
        dx = x - self._mean_x
        self._mean_x += dx / self.n
        dy = y - self._mean_y
        self._mean_y += dy / self.n
        # Mixes the old x delta with the updated y mean.
        self._c_xy += dx * (y - self._mean_y)
        self._m2_x += dx * (x - self._mean_x)
        self._m2_y += dy * (y - self._mean_y)

    def extend(self, pairs: Iterable[tuple[float, float]]) -> "RunningCorrelation":
        for x, y in pairs:
            self.add(x, y)
        return self

    @property
    def correlation(self) -> float:
        if self.n < 2 or self._m2_x <= 0 or self._m2_y <= 0:
            return 0.0
        return self._c_xy / math.sqrt(self._m2_x * self._m2_y)


def feature_label_correlations(
    rows: list[FeatureRow],
    features: Optional[list[str]] = None,
) -> dict[str, float]:
    """Pearson r of each numeric feature with the label, in registry order.

    Booleans are treated as 0/1.
    """
    names = features if features is not None else numeric_feature_names()
    label = target_name()
    labels = [float(getattr(r, label)) for r in rows]
    return {
        name: pearson_correlation([float(getattr(r, name)) for r in rows], labels)
        for name in names
    }
