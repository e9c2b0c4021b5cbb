"""
sales_forecaster.reporting — Persistence and formatting of pipeline outputs.

Modules:
  export     — Weekly cache JSON round-trip, leakage report files, CSV/JSON helpers.
  formatters — ASCII terminal formatters for Typer CLI commands.
"""
