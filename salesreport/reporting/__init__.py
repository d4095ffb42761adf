"""Reporting module for sales reports.

Aggregates enriched orders into financial metrics and exports them.
"""

from salesreport.reporting.aggregator import Report, aggregate
from salesreport.reporting.export import export_report

__all__ = ["Report", "aggregate", "export_report"]
