"""Per-order financial formulas shared by the matcher and the aggregator."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OrderMetrics:
    selling_price: float
    quantity: float
    unit_cost: float
    total_cost: float
    profit: float
    profit_margin: float  # percent of selling price


def compute_order_metrics(selling_price: float, quantity: float, unit_cost: float) -> OrderMetrics:
    """total_cost = unit_cost x quantity; profit = selling_price - total_cost.

    The margin is ``profit / selling_price * 100`` for positive prices, else 0.
    """
    total_cost = unit_cost * quantity
    profit = selling_price - total_cost
    margin = profit / selling_price * 100 if selling_price > 0 else 0.0
    return OrderMetrics(
        selling_price=selling_price,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=total_cost,
        profit=profit,
        profit_margin=margin,
    )
