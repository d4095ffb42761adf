"""Order retention/exclusion rules.

Each order goes through one pass of early-exit checks; the first rule that
fires names the exclusion category:

1. status   - order status differs from the required status
2. refund   - refund status equals the configured refund status
3. remarks  - contact remarks contain the configured marker
4. price    - order amount outside the optional price range
5. date     - creation date outside the optional date range
6. keyword  - free-text remarks contain an exclusion keyword

Orders are never mutated or dropped; they are annotated and partitioned.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from salesreport.fields import ORDER_FIELDS, Diagnostics, resolve_number, resolve_text
from salesreport.models import ExclusionReason, FilterRules

DEFAULT_PRICE_BOUNDS = (0, 1_000_000)


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of the rule chain for one order."""

    kept: bool
    category: ExclusionReason | None = None
    reason: str = ""


KEEP = FilterDecision(kept=True)


@dataclass(frozen=True)
class FilteredOrder:
    """An untouched order plus its filter decision."""

    order: Mapping[str, Any]
    decision: FilterDecision

    @property
    def kept(self) -> bool:
        return self.decision.kept

    def to_record(self) -> dict[str, Any]:
        """Original fields plus ``_kept``/``_filter_reason``/``_filter_category``."""
        record = dict(self.order)
        record["_kept"] = self.decision.kept
        record["_filter_reason"] = self.decision.reason
        record["_filter_category"] = (
            self.decision.category.value if self.decision.category else ""
        )
        return record


@dataclass
class FilterStats:
    """Counts and amounts over one filter run."""

    total: int = 0
    kept: int = 0
    excluded: int = 0
    reasons: dict[str, int] = field(
        default_factory=lambda: {reason.value: 0 for reason in ExclusionReason}
    )
    all_amount: float = 0.0
    kept_amount: float = 0.0

    @property
    def average_kept_amount(self) -> float:
        return self.kept_amount / self.kept if self.kept > 0 else 0.0


@dataclass
class FilterResult:
    annotated: list[FilteredOrder]
    stats: FilterStats
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def kept(self) -> list[Mapping[str, Any]]:
        return [item.order for item in self.annotated if item.kept]

    @property
    def excluded(self) -> list[FilteredOrder]:
        return [item for item in self.annotated if not item.kept]

    @classmethod
    def from_annotated(
        cls, annotated: list[FilteredOrder], diagnostics: Diagnostics | None = None
    ) -> FilterResult:
        return cls(
            annotated=annotated,
            stats=summarize(annotated),
            diagnostics=diagnostics or Diagnostics(),
        )


@dataclass(frozen=True)
class DateBounds:
    start: str | None = None
    end: str | None = None

    @property
    def active(self) -> bool:
        return bool(self.start or self.end)


def _valid_date(bound: str) -> bool:
    try:
        date.fromisoformat(bound[:10])
    except ValueError:
        return False
    return True


def resolve_date_bounds(rules: FilterRules, diagnostics: Diagnostics | None = None) -> DateBounds:
    """Validated date bounds; an unparseable bound is dropped with a warning."""
    if rules.date_range is None:
        return DateBounds()

    bounds: dict[str, str | None] = {"start": None, "end": None}
    for side in ("start", "end"):
        value = getattr(rules.date_range, side)
        if not value:
            continue
        if _valid_date(value):
            # Taobao timestamps separate date and time with a space
            bounds[side] = value.replace("T", " ", 1)
        elif diagnostics is not None:
            diagnostics.warn(f"date range {side} '{value}' is not an ISO date; ignored")
    return DateBounds(**bounds)


def order_amount(order: Mapping[str, Any]) -> float:
    return resolve_number(order, ORDER_FIELDS["order_amount"], default=0.0)


def evaluate_order(
    order: Mapping[str, Any],
    rules: FilterRules,
    bounds: DateBounds | None = None,
) -> FilterDecision:
    """Run the rule chain for one order; first failing rule wins."""
    status = resolve_text(order, ORDER_FIELDS["status"])
    if status != rules.required_status:
        return FilterDecision(
            False,
            ExclusionReason.STATUS,
            f'order status is "{status}", not "{rules.required_status}"',
        )

    refund = resolve_text(order, ORDER_FIELDS["refund_status"])
    if rules.refund_status and refund == rules.refund_status:
        return FilterDecision(
            False, ExclusionReason.REFUND, f'refund status is "{refund}"'
        )

    contact_remarks = resolve_text(order, ORDER_FIELDS["contact_remarks"])
    if rules.remarks_marker and rules.remarks_marker in contact_remarks:
        return FilterDecision(
            False,
            ExclusionReason.REMARKS,
            f'contact remarks contain "{rules.remarks_marker}"',
        )

    if rules.price_range is not None:
        low, high = rules.price_range
        price = order_amount(order)
        if price < low or price > high:
            return FilterDecision(
                False, ExclusionReason.PRICE, f"price {price:g} outside {low:g}-{high:g}"
            )

    if bounds is not None and bounds.active:
        created = resolve_text(order, ORDER_FIELDS["created_at"]).replace("T", " ", 1)
        if created:
            # Compare on the bound's own length so the end day is inclusive
            if bounds.start and created[: len(bounds.start)] < bounds.start:
                return FilterDecision(
                    False, ExclusionReason.DATE, f"date {created} before {bounds.start}"
                )
            if bounds.end and created[: len(bounds.end)] > bounds.end:
                return FilterDecision(
                    False, ExclusionReason.DATE, f"date {created} after {bounds.end}"
                )

    keywords = rules.keywords
    if keywords:
        remarks = resolve_text(order, ORDER_FIELDS["remarks"]).lower()
        hit = next((kw for kw in keywords if kw in remarks), None)
        if hit is not None:
            return FilterDecision(
                False, ExclusionReason.KEYWORD, f'remarks contain keyword "{hit}"'
            )

    return KEEP


def annotate_orders(
    orders: Iterable[Mapping[str, Any]],
    rules: FilterRules,
    bounds: DateBounds | None = None,
) -> list[FilteredOrder]:
    return [FilteredOrder(order, evaluate_order(order, rules, bounds)) for order in orders]


def summarize(annotated: Sequence[FilteredOrder]) -> FilterStats:
    """Single pass over annotated orders."""
    stats = FilterStats(total=len(annotated))
    for item in annotated:
        amount = order_amount(item.order)
        stats.all_amount += amount
        if item.kept:
            stats.kept += 1
            stats.kept_amount += amount
        else:
            stats.excluded += 1
            stats.reasons[item.decision.category.value] += 1
    return stats


def check_filter_fields(orders: Sequence[Mapping[str, Any]], diagnostics: Diagnostics) -> None:
    """Warn when the columns the mandatory rules depend on are absent."""
    if not orders:
        return
    sample = orders[0]
    for logical in ("status", "order_amount"):
        if not any(alias in sample for alias in ORDER_FIELDS[logical]):
            diagnostics.warn(
                f"orders have no {logical} column (tried {', '.join(ORDER_FIELDS[logical])})"
            )


def filter_orders(
    orders: Sequence[Mapping[str, Any]],
    rules: FilterRules | None = None,
) -> FilterResult:
    """Annotate every order with its filter decision and compute statistics.

    Args:
        orders: Parsed order rows
        rules: Filter configuration (defaults to the standard Taobao rules)

    Returns:
        FilterResult with all annotated orders, the kept subset and stats
    """
    rules = rules or FilterRules()
    diagnostics = Diagnostics()
    check_filter_fields(orders, diagnostics)
    bounds = resolve_date_bounds(rules, diagnostics)
    annotated = annotate_orders(orders, rules, bounds)
    return FilterResult.from_annotated(annotated, diagnostics)


def collect_statuses(orders: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct non-empty order statuses in first-seen order."""
    seen: dict[str, None] = {}
    for order in orders:
        status = resolve_text(order, ORDER_FIELDS["status"])
        if status:
            seen.setdefault(status, None)
    return list(seen)


def price_bounds(orders: Iterable[Mapping[str, Any]]) -> tuple[int, int]:
    """Slider bounds for the price rule over positive order amounts."""
    prices = [p for p in (order_amount(order) for order in orders) if p > 0]
    if not prices:
        return DEFAULT_PRICE_BOUNDS
    low, high = DEFAULT_PRICE_BOUNDS
    return math.floor(min(min(prices), low)), math.ceil(max(max(prices), high))
