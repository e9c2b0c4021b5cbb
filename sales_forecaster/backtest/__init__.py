"""Chronological splitting and evaluation.

Modules
-------
splits     — Date-cutoff split, rolling-window folds, fraction split
metrics    — R² / MAE / RMSE / MAPE, cross-validation summaries, baseline comparison
models     — Trainer protocol and naive baselines
evaluator  — Fit/score a trainer over a split or a set of folds
"""
