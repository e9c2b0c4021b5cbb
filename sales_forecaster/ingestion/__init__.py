"""Raw data ingestion.

Modules
-------
olist_csv — Olist e-commerce CSV exports → validated Order / OrderItem / Product records
"""
