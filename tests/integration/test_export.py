"""Integration tests for report export."""

from __future__ import annotations

import csv
import json
from datetime import datetime

import pandas as pd
import pytest

from salesreport.config import ReportConfig
from salesreport.pipeline.orchestrator import run_pipeline
from salesreport.reporting.export import REPORT_TITLE, build_sections, export_report

GENERATED_AT = datetime(2024, 5, 1, 9, 30, 0)


@pytest.fixture
def pipeline_result(sample_orders, sample_products):
    return run_pipeline(sample_orders, sample_products)


class TestBuildSections:
    def test_canonical_order(self, pipeline_result):
        tables = build_sections(
            pipeline_result.enriched, pipeline_result.report, ["risks", "summary"]
        )

        assert list(tables) == ["summary", "risks"]
        assert len(tables["risks"]) == 4

    def test_unknown_section(self, pipeline_result):
        with pytest.raises(ValueError, match="charts"):
            build_sections(pipeline_result.enriched, pipeline_result.report, ["charts"])

    def test_detail_rows(self, pipeline_result):
        rows = build_sections(pipeline_result.enriched, pipeline_result.report, ["details"])[
            "details"
        ]

        assert [row["Order ID"] for row in rows] == ["T0001", "T0002", "T0003"]
        assert rows[2]["Match status"] == "unmatched"
        assert rows[1]["Total cost"] == 120


class TestExportReport:
    def test_csv(self, tmp_path, pipeline_result):
        path = export_report(
            pipeline_result.enriched,
            pipeline_result.report,
            tmp_path / "report.csv",
            generated_at=GENERATED_AT,
        )

        with open(path, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))

        assert rows[0] == [REPORT_TITLE]
        assert rows[1] == ["Generated", "2024-05-01 09:30:00"]
        assert ["Summary"] in rows
        assert ["Total revenue", "350.0"] in rows
        assert ["Products"] in rows

    def test_json(self, tmp_path, pipeline_result):
        path = export_report(
            pipeline_result.enriched,
            pipeline_result.report,
            tmp_path / "report.json",
            sections=["summary", "products"],
            generated_at=GENERATED_AT,
        )

        payload = json.loads(path.read_text(encoding="utf-8"))

        assert payload["generated_at"] == "2024-05-01T09:30:00"
        assert payload["metrics"]["totals"]["order_count"] == 3
        assert payload["products"][0]["Product"] == "红色卫衣"
        assert "details" not in payload

    def test_xlsx(self, tmp_path, pipeline_result):
        path = export_report(
            pipeline_result.enriched, pipeline_result.report, tmp_path / "report.xlsx"
        )

        sheets = pd.read_excel(path, sheet_name=None)

        assert list(sheets) == ["Summary", "Details", "Products", "Risks", "Risk orders"]
        assert len(sheets["Details"]) == 3

    def test_explicit_format_overrides_suffix(self, tmp_path, pipeline_result):
        path = export_report(
            pipeline_result.enriched, pipeline_result.report, tmp_path / "report.out", fmt="json"
        )

        assert json.loads(path.read_text(encoding="utf-8"))["title"] == REPORT_TITLE

    def test_unsupported_format(self, tmp_path, pipeline_result):
        with pytest.raises(ValueError, match="Unsupported"):
            export_report(pipeline_result.enriched, pipeline_result.report, tmp_path / "r.pdf")

    def test_no_sections(self, tmp_path, pipeline_result):
        with pytest.raises(ValueError, match="No report sections"):
            export_report(
                pipeline_result.enriched, pipeline_result.report, tmp_path / "r.csv", sections=[]
            )


class TestRiskDrilldown:
    """Low-margin and loss samples reach every export format."""

    @pytest.fixture
    def loss_result(self, make_order, sample_products):
        orders = [
            make_order(订单编号=f"L{i}", 外部系统编号="SKU-001", 商家实收金额="30", 买家应付货款="30")
            for i in range(3)
        ]
        orders.append(make_order(订单编号="M1", 外部系统编号="SKU-001", 商家实收金额="45"))
        return run_pipeline(orders, sample_products)

    def test_risk_order_rows(self, loss_result):
        rows = build_sections(loss_result.enriched, loss_result.report, ["risk_orders"])[
            "risk_orders"
        ]

        # LOW bucket first: 45 - 40 = 5 profit (11.1%), then the three losses
        assert [row["Bucket"] for row in rows] == ["low", "loss", "loss", "loss"]
        assert rows[1] == {
            "Bucket": "loss",
            "Order ID": "L0",
            "Product": "蓝色T恤",
            "Revenue": 30,
            "Profit": -10,
            "Profit margin %": pytest.approx(-33.33),
        }

    def test_json_contains_drilldown(self, tmp_path, loss_result):
        path = export_report(loss_result.enriched, loss_result.report, tmp_path / "risk.json")

        payload = json.loads(path.read_text(encoding="utf-8"))

        assert [row["Order ID"] for row in payload["risk_orders"]] == ["M1", "L0", "L1", "L2"]
        assert {row["Bucket"]: row["Orders"] for row in payload["risks"]}["loss"] == 3

    def test_csv_and_xlsx_contain_drilldown(self, tmp_path, loss_result):
        csv_path = export_report(loss_result.enriched, loss_result.report, tmp_path / "risk.csv")
        xlsx_path = export_report(loss_result.enriched, loss_result.report, tmp_path / "risk.xlsx")

        with open(csv_path, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))
        sheet = pd.read_excel(xlsx_path, sheet_name="Risk orders", dtype={"Order ID": str})

        assert ["Risk orders"] in rows
        assert ["loss", "L2", "蓝色T恤", "30.0", "-10.0", "-33.33"] in rows
        assert list(sheet["Order ID"]) == ["M1", "L0", "L1", "L2"]

    def test_samples_respect_limit(self, make_order, sample_products):
        orders = [make_order(订单编号=f"L{i}", 商家实收金额="30") for i in range(5)]
        result = run_pipeline(
            orders, sample_products, report_options=ReportConfig(risk_sample_limit=2)
        )

        rows = build_sections(result.enriched, result.report, ["risk_orders", "risks"])

        assert len(rows["risk_orders"]) == 2
        assert {row["Bucket"]: row["Orders"] for row in rows["risks"]}["loss"] == 5


class TestFilterStatsInSummary:
    def test_average_kept_amount_exported(self, tmp_path, pipeline_result):
        path = export_report(
            pipeline_result.enriched,
            pipeline_result.report,
            tmp_path / "summary.json",
            sections=["summary"],
            filter_stats=pipeline_result.filter_result.stats,
        )

        summary = {
            row["Metric"]: row["Value"]
            for row in json.loads(path.read_text(encoding="utf-8"))["summary"]
        }

        assert summary["Orders before filter"] == 5
        assert summary["Kept orders amount"] == 350
        assert summary["Average kept order amount"] == pytest.approx(116.67)

    def test_summary_without_stats(self, pipeline_result):
        rows = build_sections(pipeline_result.enriched, pipeline_result.report, ["summary"])

        assert "Average kept order amount" not in {row["Metric"] for row in rows["summary"]}
