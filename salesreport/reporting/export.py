"""Report export to CSV, JSON and Excel.

Sections:
- summary:     headline financial figures (plus filter statistics when given)
- details:     one row per enriched order
- products:    top products by revenue
- risks:       margin bucket counts and revenue
- risk_orders: low-margin and loss sample orders for drill-down
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from salesreport.fields import ORDER_FIELDS, resolve_text
from salesreport.filtering.order_filter import FilterStats
from salesreport.matching.models import EnrichedOrder
from salesreport.models import MarginBucket
from salesreport.reporting.aggregator import Report

REPORT_TITLE = "Sales Report - Financial Analysis"
SECTIONS = ("summary", "details", "products", "risks", "risk_orders")
FORMATS = ("csv", "json", "xlsx")

DRILLDOWN_BUCKETS = (MarginBucket.LOW, MarginBucket.LOSS)
RISK_ORDER_COLUMNS = ("Order ID", "Product", "Revenue", "Profit", "Profit margin %")


def section_title(name: str) -> str:
    return name.replace("_", " ").capitalize()


def summary_rows(report: Report, filter_stats: FilterStats | None = None) -> list[dict[str, Any]]:
    t = report.totals
    rows: list[tuple[str, Any]] = []
    if filter_stats is not None:
        rows += [
            ("Orders before filter", filter_stats.total),
            ("Excluded orders", filter_stats.excluded),
            ("All orders amount", round(filter_stats.all_amount, 2)),
            ("Kept orders amount", round(filter_stats.kept_amount, 2)),
            ("Average kept order amount", round(filter_stats.average_kept_amount, 2)),
        ]
    rows += [
        ("Orders", t.order_count),
        ("Matched", t.matched_count),
        ("Unmatched", t.unmatched_count),
        ("Match rate", f"{t.match_rate:.2f}%"),
        ("Total revenue", round(t.total_revenue, 2)),
        ("Total cost", round(t.total_cost, 2)),
        ("Total profit", round(t.total_profit, 2)),
        ("Profit margin", f"{t.profit_margin:.2f}%"),
        ("Average order value", round(t.avg_order_value, 2)),
        ("Average profit", round(t.avg_profit, 2)),
    ]
    return [{"Metric": metric, "Value": value} for metric, value in rows]


def detail_rows(orders: Iterable[EnrichedOrder]) -> list[dict[str, Any]]:
    return [
        {
            "Order ID": resolve_text(o.order, ORDER_FIELDS["order_id"], default="-"),
            "Product": resolve_text(o.order, ORDER_FIELDS["product_name"], default="-"),
            "External code": o.external_code or "-",
            "Revenue": round(o.selling_price, 2),
            "Quantity": o.quantity,
            "Unit cost": round(o.unit_cost, 2),
            "Total cost": round(o.total_cost, 2),
            "Profit": round(o.profit, 2),
            "Profit margin %": round(o.profit_margin, 2),
            "Match status": o.match_status.value,
            "Match method": o.match_method.value,
        }
        for o in orders
    ]


def product_rows(report: Report) -> list[dict[str, Any]]:
    return [
        {
            "Product": p.name,
            "Orders": p.count,
            "Revenue": round(p.revenue, 2),
            "Cost": round(p.cost, 2),
            "Profit": round(p.profit, 2),
        }
        for p in report.product_breakdown
    ]


def risk_rows(report: Report) -> list[dict[str, Any]]:
    return [
        {
            "Bucket": b.bucket.value,
            "Label": b.label,
            "Orders": b.count,
            "Revenue": round(b.revenue, 2),
        }
        for b in report.risk_buckets.values()
    ]


def risk_order_rows(report: Report) -> list[dict[str, Any]]:
    """Sample orders of the low-margin and loss buckets."""
    rows = []
    for bucket in DRILLDOWN_BUCKETS:
        risk = report.risk_buckets[bucket]
        for detail in detail_rows(risk.samples):
            rows.append(
                {"Bucket": risk.bucket.value, **{c: detail[c] for c in RISK_ORDER_COLUMNS}}
            )
    return rows


def build_sections(
    orders: Sequence[EnrichedOrder],
    report: Report,
    sections: Iterable[str] = SECTIONS,
    filter_stats: FilterStats | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Tabular rows per requested section, in canonical section order."""
    wanted = set(sections)
    unknown = wanted - set(SECTIONS)
    if unknown:
        raise ValueError(f"Unknown report sections: {', '.join(sorted(unknown))}")

    builders = {
        "summary": lambda: summary_rows(report, filter_stats),
        "details": lambda: detail_rows(orders),
        "products": lambda: product_rows(report),
        "risks": lambda: risk_rows(report),
        "risk_orders": lambda: risk_order_rows(report),
    }
    return {name: builders[name]() for name in SECTIONS if name in wanted}


def _write_csv(path: Path, tables: dict[str, list[dict[str, Any]]], generated_at: datetime) -> None:
    # utf-8-sig so Excel opens Chinese product names correctly
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.writer(f)
        writer.writerow([REPORT_TITLE])
        writer.writerow(["Generated", generated_at.strftime("%Y-%m-%d %H:%M:%S")])
        for name, rows in tables.items():
            writer.writerow([])
            writer.writerow([section_title(name)])
            if not rows:
                continue
            headers = list(rows[0].keys())
            writer.writerow(headers)
            for row in rows:
                writer.writerow([row[h] for h in headers])


def _write_json(
    path: Path,
    tables: dict[str, list[dict[str, Any]]],
    report: Report,
    generated_at: datetime,
) -> None:
    payload = {
        "title": REPORT_TITLE,
        "generated_at": generated_at.isoformat(timespec="seconds"),
        "metrics": report.to_dict(),
        **tables,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def _write_xlsx(path: Path, tables: dict[str, list[dict[str, Any]]]) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in tables.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=section_title(name), index=False)


def export_report(
    orders: Sequence[EnrichedOrder],
    report: Report,
    path: Path,
    fmt: str | None = None,
    sections: Iterable[str] = SECTIONS,
    generated_at: datetime | None = None,
    filter_stats: FilterStats | None = None,
) -> Path:
    """Write the report to ``path``.

    Args:
        orders: Enriched orders for the details section
        report: Aggregated report
        path: Output file
        fmt: "csv", "json" or "xlsx"; inferred from the suffix when omitted
        sections: Subset of SECTIONS to include
        generated_at: Timestamp printed in the header (defaults to now)
        filter_stats: Order filter statistics added to the summary section

    Returns:
        The written path

    Raises:
        ValueError: If the format or a section name is unknown
    """
    fmt = (fmt or path.suffix.lstrip(".")).lower()
    if fmt == "excel":
        fmt = "xlsx"
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported export format: {fmt or path.suffix}. Use CSV, JSON or XLSX.")

    generated_at = generated_at or datetime.now()
    tables = build_sections(orders, report, sections, filter_stats)
    if not tables:
        raise ValueError("No report sections selected")

    if fmt == "csv":
        _write_csv(path, tables, generated_at)
    elif fmt == "json":
        _write_json(path, tables, report, generated_at)
    else:
        _write_xlsx(path, tables)

    return path
