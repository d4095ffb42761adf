"""End-to-end report pipeline.

Coordinates order filter -> cost matcher -> financial aggregator. Each stage
receives the previous stage's complete output and returns a new structure;
nothing is shared between runs.

Large inputs are processed in chunks so a host event loop can be serviced
between slices (``on_progress``) and a run can be cancelled. Results are
identical to a single pass, and a cancelled run publishes nothing.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from salesreport.config import ReportConfig, get_config
from salesreport.fields import Diagnostics
from salesreport.filtering.order_filter import (
    FilteredOrder,
    FilterResult,
    annotate_orders,
    check_filter_fields,
    resolve_date_bounds,
)
from salesreport.matching.matcher import CostMatcher, check_match_fields
from salesreport.matching.models import EnrichedOrder
from salesreport.models import FilterRules, MatchSettings
from salesreport.reporting.aggregator import Aggregator, Report

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str, int, int], None]


class PipelineCancelled(RuntimeError):
    """Raised when the host cancels a run between chunks."""


@dataclass
class PipelineResult:
    """Complete output of one pipeline run."""

    filter_result: FilterResult
    enriched: list[EnrichedOrder]
    report: Report
    diagnostics: Diagnostics

    @property
    def kept_orders(self) -> list[Mapping[str, Any]]:
        return self.filter_result.kept


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start : start + size]


class ReportPipeline:
    """Filter, match and aggregate one batch of orders against a catalog."""

    def __init__(
        self,
        filter_rules: FilterRules | None = None,
        match_settings: MatchSettings | None = None,
        report_options: ReportConfig | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            filter_rules: Order filter configuration (defaults from environment)
            match_settings: Cost matching configuration (defaults from environment)
            report_options: Aggregation options (defaults from environment)
        """
        config = get_config()
        self.filter_rules = filter_rules or config.filter_rules()
        self.match_settings = match_settings or config.match_settings()
        self.report_options = report_options or config.report

    def run(
        self,
        orders: Sequence[Mapping[str, Any]],
        products: Sequence[Mapping[str, Any]],
        *,
        cancel_event: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Execute the pipeline.

        Args:
            orders: Parsed order rows
            products: Parsed catalog rows
            cancel_event: Set by the host to abandon the run between chunks
            on_progress: Called as (stage, processed, total) after each chunk

        Returns:
            PipelineResult with annotated, enriched and aggregated outputs

        Raises:
            PipelineCancelled: If ``cancel_event`` was set during the run
        """
        chunk_size = self.report_options.chunk_size
        log = logger.bind(orders=len(orders), products=len(products))

        def checkpoint(stage: str, done: int, total: int) -> None:
            if cancel_event is not None and cancel_event.is_set():
                log.info("pipeline_cancelled", stage=stage, processed=done)
                raise PipelineCancelled(f"cancelled during {stage} ({done}/{total})")
            if on_progress is not None:
                on_progress(stage, done, total)

        # Stage 1: order filter
        filter_diagnostics = Diagnostics()
        check_filter_fields(orders, filter_diagnostics)
        bounds = resolve_date_bounds(self.filter_rules, filter_diagnostics)
        annotated: list[FilteredOrder] = []
        for chunk in chunked(orders, chunk_size):
            annotated.extend(annotate_orders(chunk, self.filter_rules, bounds))
            checkpoint("filter", len(annotated), len(orders))
        filter_result = FilterResult.from_annotated(annotated, filter_diagnostics)
        log.info(
            "orders_filtered",
            kept=filter_result.stats.kept,
            excluded=filter_result.stats.excluded,
            reasons=filter_result.stats.reasons,
        )

        # Stage 2: cost matcher
        kept = filter_result.kept
        matcher = CostMatcher(products, self.match_settings)
        enriched: list[EnrichedOrder] = []
        for chunk in chunked(kept, chunk_size):
            enriched.extend(matcher.match_all(chunk))
            checkpoint("match", len(enriched), len(kept))
        matched = sum(1 for order in enriched if order.matched)
        log.info(
            "orders_matched",
            strategy=self.match_settings.strategy,
            matched=matched,
            unmatched=len(enriched) - matched,
        )

        # Stage 3: financial aggregator
        aggregator = Aggregator(self.report_options)
        processed = 0
        for chunk in chunked(enriched, chunk_size):
            aggregator.add(chunk)
            processed += len(chunk)
            checkpoint("aggregate", processed, len(enriched))
        report = aggregator.result()
        log.info(
            "report_aggregated",
            revenue=round(report.totals.total_revenue, 2),
            profit=round(report.totals.total_profit, 2),
        )

        diagnostics = filter_result.diagnostics.merge(
            check_match_fields(kept, products, self.match_settings)
        )
        return PipelineResult(
            filter_result=filter_result,
            enriched=enriched,
            report=report,
            diagnostics=diagnostics,
        )


def run_pipeline(
    orders: Sequence[Mapping[str, Any]],
    products: Sequence[Mapping[str, Any]],
    filter_rules: FilterRules | None = None,
    match_settings: MatchSettings | None = None,
    report_options: ReportConfig | None = None,
    **kwargs: Any,
) -> PipelineResult:
    """Convenience function: build a pipeline and run it once."""
    pipeline = ReportPipeline(filter_rules, match_settings, report_options)
    return pipeline.run(orders, products, **kwargs)
