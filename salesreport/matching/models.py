"""Data models for the cost matcher."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from salesreport.fields import PRODUCT_FIELDS, resolve_text
from salesreport.finance import OrderMetrics
from salesreport.models import MatchMethod, MatchStatus


@dataclass
class ProductIndex:
    """Catalog lookups built once per matching run.

    Keys are unique within each index: a duplicate code or name in the
    catalog replaces the earlier product (last write wins).
    """

    by_code: dict[str, Mapping[str, Any]] = field(default_factory=dict)
    by_name: dict[str, Mapping[str, Any]] = field(default_factory=dict)

    @classmethod
    def build(cls, products: Iterable[Mapping[str, Any]]) -> ProductIndex:
        index = cls()
        for product in products:
            code = resolve_text(product, PRODUCT_FIELDS["code"])
            if code:
                index.by_code[code] = product
            name = resolve_text(product, PRODUCT_FIELDS["name"]).lower()
            if name:
                index.by_name[name] = product
        return index


@dataclass(frozen=True)
class EnrichedOrder:
    """An untouched order plus its matched product and financial fields."""

    order: Mapping[str, Any]
    product: Mapping[str, Any] | None
    match_status: MatchStatus
    match_method: MatchMethod
    external_code: str
    metrics: OrderMetrics

    @property
    def matched(self) -> bool:
        return self.match_status is MatchStatus.MATCHED

    @property
    def selling_price(self) -> float:
        return self.metrics.selling_price

    @property
    def quantity(self) -> float:
        return self.metrics.quantity

    @property
    def unit_cost(self) -> float:
        return self.metrics.unit_cost

    @property
    def total_cost(self) -> float:
        return self.metrics.total_cost

    @property
    def profit(self) -> float:
        return self.metrics.profit

    @property
    def profit_margin(self) -> float:
        return self.metrics.profit_margin

    def cost_data(self) -> dict[str, Any] | None:
        """Catalog fields the report shows for a matched order."""
        if self.product is None:
            return None
        return {
            "product_code": resolve_text(self.product, PRODUCT_FIELDS["code"]),
            "product_name": resolve_text(self.product, PRODUCT_FIELDS["name"]),
            "unit_cost": self.unit_cost,
            "supplier": resolve_text(self.product, PRODUCT_FIELDS["supplier"], default="N/A"),
        }

    def to_record(self) -> dict[str, Any]:
        """Original fields plus the derived ``_``-prefixed keys."""
        record = dict(self.order)
        record.update(
            {
                "_match_status": self.match_status.value,
                "_match_method": self.match_method.value,
                "_external_code": self.external_code,
                "_selling_price": self.selling_price,
                "_quantity": self.quantity,
                "_unit_cost": self.unit_cost,
                "_total_cost": self.total_cost,
                "_profit": self.profit,
                "_profit_margin": round(self.profit_margin, 2),
                "_cost_data": self.cost_data(),
            }
        )
        return record
