"""Order sheet and product catalog ingestion (CSV/XLSX -> records)."""
