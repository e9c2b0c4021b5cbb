"""
Pipeline stages.

Each stage subclasses ``base.PipelineStage`` and is run from the CLI:

  prepare        raw CSVs → weekly cache
  feature_build  weekly cache → feature Parquet + manifest
  train          global LightGBM vs baseline, artifact + metrics
  leakage_audit  five-check audit of the date split
  cross_validate per-category rolling-window CV
"""
