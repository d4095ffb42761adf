"""Financial aggregation over cost-enriched orders.

Computes per-order profit fields and rolls them into totals, a top-N
product breakdown by revenue and margin risk buckets. Aggregation is a pure
reduction: feeding the same orders in one call or in several chunks gives
the same report, and the numbers never depend on input size.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field, replace
from typing import Any

from salesreport.config import ReportConfig
from salesreport.fields import ORDER_FIELDS, resolve_text
from salesreport.finance import OrderMetrics, compute_order_metrics
from salesreport.matching.models import EnrichedOrder
from salesreport.models import MarginBucket, MatchMethod

UNKNOWN_PRODUCT = "未知商品"

BUCKET_LABELS = {
    MarginBucket.HIGH: "High margin (>=25%)",
    MarginBucket.MID: "Mid margin (15-25%)",
    MarginBucket.LOW: "Low margin (0-15%)",
    MarginBucket.LOSS: "Loss",
}


@dataclass
class FinancialTotals:
    """Report-level financial figures."""

    order_count: int = 0
    matched_count: int = 0
    unmatched_count: int = 0
    match_rate: float = 0.0  # percent
    total_revenue: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    profit_margin: float = 0.0  # percent
    avg_order_value: float = 0.0
    avg_profit: float = 0.0
    matched_by_method: dict[str, int] = field(
        default_factory=lambda: {
            method.value: 0 for method in MatchMethod if method is not MatchMethod.NONE
        }
    )


@dataclass
class ProductSummary:
    name: str
    revenue: float = 0.0
    cost: float = 0.0
    profit: float = 0.0
    count: int = 0


@dataclass
class RiskBucket:
    """Orders falling in one margin band."""

    bucket: MarginBucket
    count: int = 0
    revenue: float = 0.0
    samples: list[EnrichedOrder] = field(default_factory=list)

    @property
    def label(self) -> str:
        return BUCKET_LABELS[self.bucket]


@dataclass
class Report:
    per_order: list[OrderMetrics]
    totals: FinancialTotals
    product_breakdown: list[ProductSummary]
    risk_buckets: dict[MarginBucket, RiskBucket]
    charts_enabled: bool = True

    def profit_distribution(self) -> list[dict[str, Any]]:
        """Non-empty buckets in display order (chart series)."""
        return [
            {"name": b.label, "bucket": b.bucket.value, "value": b.count, "revenue": b.revenue}
            for b in self.risk_buckets.values()
            if b.count > 0
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totals": asdict(self.totals),
            "product_breakdown": [asdict(p) for p in self.product_breakdown],
            "risk_buckets": {
                bucket.value: {"label": b.label, "count": b.count, "revenue": b.revenue}
                for bucket, b in self.risk_buckets.items()
            },
            "charts_enabled": self.charts_enabled,
        }


def classify_margin(
    profit: float,
    selling_price: float,
    high_ratio: float = 0.25,
    mid_ratio: float = 0.15,
) -> MarginBucket:
    """Place an order in exactly one margin bucket."""
    if profit <= 0:
        return MarginBucket.LOSS
    if profit >= selling_price * high_ratio:
        return MarginBucket.HIGH
    if profit >= selling_price * mid_ratio:
        return MarginBucket.MID
    return MarginBucket.LOW


def product_label(order: EnrichedOrder, max_length: int = 20) -> str:
    name = resolve_text(order.order, ORDER_FIELDS["product_name"]) or UNKNOWN_PRODUCT
    if len(name) > max_length:
        return name[:max_length] + "..."
    return name


class Aggregator:
    """Incremental reduction of enriched orders into a Report."""

    def __init__(self, options: ReportConfig | None = None) -> None:
        self.options = options or ReportConfig()
        self._per_order: list[OrderMetrics] = []
        self._matched = 0
        self._by_method: dict[str, int] = FinancialTotals().matched_by_method
        self._products: dict[str, ProductSummary] = {}
        self._buckets = {bucket: RiskBucket(bucket) for bucket in MarginBucket}

    def add(self, orders: Iterable[EnrichedOrder]) -> Aggregator:
        opts = self.options
        for order in orders:
            metrics = compute_order_metrics(order.selling_price, order.quantity, order.unit_cost)
            self._per_order.append(metrics)

            if order.matched:
                self._matched += 1
                if order.match_method.value in self._by_method:
                    self._by_method[order.match_method.value] += 1

            name = product_label(order, opts.product_name_max_length)
            summary = self._products.get(name)
            if summary is None:
                summary = self._products[name] = ProductSummary(name)
            summary.revenue += metrics.selling_price
            summary.cost += metrics.total_cost
            summary.profit += metrics.profit
            summary.count += 1

            bucket = self._buckets[
                classify_margin(
                    metrics.profit,
                    metrics.selling_price,
                    opts.high_margin_ratio,
                    opts.mid_margin_ratio,
                )
            ]
            bucket.count += 1
            bucket.revenue += metrics.selling_price
            if len(bucket.samples) < opts.risk_sample_limit:
                bucket.samples.append(order)
        return self

    def result(self) -> Report:
        count = len(self._per_order)
        revenue = sum(m.selling_price for m in self._per_order)
        cost = sum(m.total_cost for m in self._per_order)
        profit = revenue - cost

        totals = FinancialTotals(
            order_count=count,
            matched_count=self._matched,
            unmatched_count=count - self._matched,
            match_rate=self._matched / count * 100 if count > 0 else 0.0,
            total_revenue=revenue,
            total_cost=cost,
            total_profit=profit,
            profit_margin=profit / revenue * 100 if revenue > 0 else 0.0,
            avg_order_value=revenue / count if count > 0 else 0.0,
            avg_profit=profit / count if count > 0 else 0.0,
            matched_by_method=dict(self._by_method),
        )

        # sorted() is stable: equal revenue keeps first-seen order
        breakdown = [
            replace(p)
            for p in sorted(self._products.values(), key=lambda p: p.revenue, reverse=True)
        ]

        return Report(
            per_order=list(self._per_order),
            totals=totals,
            product_breakdown=breakdown[: self.options.top_products],
            risk_buckets={
                bucket: RiskBucket(b.bucket, b.count, b.revenue, list(b.samples))
                for bucket, b in self._buckets.items()
            },
            charts_enabled=count <= self.options.chart_row_limit,
        )


def aggregate(orders: Iterable[EnrichedOrder], options: ReportConfig | None = None) -> Report:
    """Compute the full financial report for a sequence of enriched orders."""
    return Aggregator(options).add(orders).result()
