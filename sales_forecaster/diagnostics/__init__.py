"""Post-hoc leakage diagnostics.

Modules
-------
correlation — Pearson correlation, direct and incremental
leakage     — Five-check leakage audit producing a ``LeakageReport``
"""
