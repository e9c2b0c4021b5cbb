"""LightGBM adapter for the trainer protocol.

Modules
-------
feature_selector — Model input columns and category encoding
lgbm_model       — LightGBMForecaster: log1p training, expm1 inference, joblib persistence
trainer          — LightGBMTrainer (fit/predict protocol) and artifact helpers
importance       — Permutation feature importance with an explicit outcome value
"""
