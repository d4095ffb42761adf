"""Cost matcher linking filtered orders to catalog products.

Strategies:
- code:   external system code -> catalog product code
- name:   exact lower-cased name, then bounded fuzzy name search
- hybrid: code first, then exact name only (no fuzzy fallback)

An order without a product is not an error: it is reported as unmatched
with a unit cost of 0 and keeps flowing through the pipeline.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from salesreport.fields import (
    ORDER_FIELDS,
    PRODUCT_FIELDS,
    Diagnostics,
    resolve_number,
    resolve_text,
)
from salesreport.finance import compute_order_metrics
from salesreport.matching.fuzzy import find_fuzzy
from salesreport.matching.models import EnrichedOrder, ProductIndex
from salesreport.models import MatchMethod, MatchSettings, MatchStatus

COST_FIELDS = {
    "cost": PRODUCT_FIELDS["cost"],
    "purchase": PRODUCT_FIELDS["purchase_price"],
}


class CostMatcher:
    """Resolve catalog products and unit costs for orders."""

    def __init__(
        self,
        products: Iterable[Mapping[str, Any]],
        settings: MatchSettings | None = None,
    ) -> None:
        """Initialize matcher and build the catalog indexes.

        Args:
            products: Parsed catalog rows
            settings: Strategy, fuzzy threshold and cost basis
        """
        self.settings = settings or MatchSettings()
        self.index = ProductIndex.build(products)
        self.cost_aliases = COST_FIELDS[self.settings.cost_basis]

    def find_product(
        self, code: str, name: str
    ) -> tuple[Mapping[str, Any] | None, MatchMethod]:
        """Look up a product for an order's code and (lower-cased) name."""
        strategy = self.settings.strategy

        if strategy in ("code", "hybrid") and code:
            product = self.index.by_code.get(code)
            if product is not None:
                return product, MatchMethod.CODE

        if strategy in ("name", "hybrid") and name:
            product = self.index.by_name.get(name)
            if product is not None:
                return product, MatchMethod.NAME_EXACT

            # Fuzzy search only when name matching was chosen explicitly
            if strategy == "name":
                product, _score = find_fuzzy(
                    name,
                    self.index.by_name,
                    self.settings.fuzzy_threshold,
                    self.settings.max_fuzzy_comparisons,
                )
                if product is not None:
                    return product, MatchMethod.NAME_FUZZY

        return None, MatchMethod.NONE

    def match(self, order: Mapping[str, Any]) -> EnrichedOrder:
        """Enrich a single order with its product and financial fields."""
        code = resolve_text(order, ORDER_FIELDS["external_code"])
        name = resolve_text(order, ORDER_FIELDS["product_name"]).lower()

        product, method = self.find_product(code, name)

        selling_price = resolve_number(order, ORDER_FIELDS["selling_price"], default=0.0)
        quantity = resolve_number(order, ORDER_FIELDS["quantity"], default=1.0)
        unit_cost = (
            resolve_number(product, self.cost_aliases, default=0.0) if product is not None else 0.0
        )

        return EnrichedOrder(
            order=order,
            product=product,
            match_status=MatchStatus.MATCHED if product is not None else MatchStatus.UNMATCHED,
            match_method=method,
            external_code=code,
            metrics=compute_order_metrics(selling_price, quantity, unit_cost),
        )

    def match_all(self, orders: Iterable[Mapping[str, Any]]) -> list[EnrichedOrder]:
        return [self.match(order) for order in orders]


def check_match_fields(
    orders: Sequence[Mapping[str, Any]],
    products: Sequence[Mapping[str, Any]],
    settings: MatchSettings | None = None,
) -> Diagnostics:
    """Warn about the columns the chosen strategy needs but cannot find."""
    settings = settings or MatchSettings()
    diagnostics = Diagnostics()

    needs_code = settings.strategy in ("code", "hybrid")
    needs_name = settings.strategy in ("name", "hybrid")
    checks: list[tuple[str, Sequence[Mapping[str, Any]], tuple[str, ...]]] = []
    if needs_code:
        checks.append(("order external_code", orders, ORDER_FIELDS["external_code"]))
        checks.append(("product code", products, PRODUCT_FIELDS["code"]))
    if needs_name:
        checks.append(("order product_name", orders, ORDER_FIELDS["product_name"]))
        checks.append(("product name", products, PRODUCT_FIELDS["name"]))
    checks.append(("product cost", products, COST_FIELDS[settings.cost_basis]))

    for label, records, aliases in checks:
        if not records:
            continue
        hit = next((alias for alias in aliases if alias in records[0]), None)
        diagnostics.fields[label] = hit
        if hit is None:
            diagnostics.warn(f"{label}: none of {', '.join(aliases)} present")

    return diagnostics


def match_orders(
    orders: Sequence[Mapping[str, Any]],
    products: Sequence[Mapping[str, Any]],
    strategy: str = "code",
    fuzzy_threshold: float = 80,
    *,
    settings: MatchSettings | None = None,
) -> list[EnrichedOrder]:
    """Match every order against the catalog.

    Args:
        orders: Filtered order rows
        products: Catalog rows
        strategy: "code", "name" or "hybrid" (ignored when ``settings`` given)
        fuzzy_threshold: Minimum similarity percent for fuzzy name matches
        settings: Full match settings

    Returns:
        One EnrichedOrder per input order, in input order
    """
    settings = settings or MatchSettings(strategy=strategy, fuzzy_threshold=fuzzy_threshold)
    return CostMatcher(products, settings).match_all(orders)
