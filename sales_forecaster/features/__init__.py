"""Feature engineering package for the weekly sales forecaster.

Modules
-------
weekly_agg      — Orders + items + products → per-category weekly totals
gap_fill        — Contiguous weekly series with zero-filled missing weeks
trend           — Global trend index ↔ week date (shared by builder and splitter)
registry        — FeatureSpec dataclass + FEATURE_REGISTRY (schema source of truth)
builder         — FeatureRow construction: lags, rolling mean, seasonality, calendar
quality         — FeatureQualityReport for assembled feature rows
seasonality     — Monthly / quarterly patterns and sales-peak detection
dataset_builder — Parquet + JSON manifest output for feature rows
"""
