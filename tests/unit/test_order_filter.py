"""Unit tests for the order retention/exclusion rules."""

from __future__ import annotations

import pytest

from salesreport.filtering.order_filter import (
    DateBounds,
    collect_statuses,
    evaluate_order,
    filter_orders,
    price_bounds,
    resolve_date_bounds,
)
from salesreport.fields import Diagnostics
from salesreport.models import DateRange, ExclusionReason, FilterRules


class TestMandatoryRules:
    def test_settled_order_is_kept(self, make_order):
        """Successful order, no refund, no remarks."""
        result = filter_orders([make_order()])

        assert result.stats.kept == 1
        assert result.annotated[0].decision.category is None
        assert result.annotated[0].to_record()["_kept"] is True

    def test_refunded_order_is_excluded(self, make_order):
        result = filter_orders([make_order(退款状态="退款成功")])

        decision = result.annotated[0].decision
        assert not decision.kept
        assert decision.category is ExclusionReason.REFUND
        assert result.stats.reasons["refund"] == 1

    def test_wrong_status_is_excluded(self, make_order):
        decision = evaluate_order(make_order(订单状态="交易关闭"), FilterRules())

        assert decision.category is ExclusionReason.STATUS
        assert "交易关闭" in decision.reason

    def test_missing_status_is_excluded(self, make_order):
        order = make_order()
        del order["订单状态"]

        assert evaluate_order(order, FilterRules()).category is ExclusionReason.STATUS

    def test_remarks_marker_excludes(self, make_order):
        decision = evaluate_order(make_order(联系方式备注="张三(收)"), FilterRules())

        assert decision.category is ExclusionReason.REMARKS

    def test_first_failing_rule_wins(self, make_order):
        """A refunded order with the marker is reported as refund only."""
        order = make_order(退款状态="退款成功", 联系方式备注="(收)", 备注="测试")
        rules = FilterRules(exclude_by_keyword="测试")

        result = filter_orders([order], rules)

        assert result.annotated[0].decision.category is ExclusionReason.REFUND
        assert sum(result.stats.reasons.values()) == 1


class TestOptionalRules:
    def test_price_range(self, make_order):
        rules = FilterRules(price_range=(50, 150))
        orders = [
            make_order(买家应付货款="49.99"),
            make_order(买家应付货款="50"),
            make_order(买家应付货款="150"),
            make_order(买家应付货款="151"),
        ]

        result = filter_orders(orders, rules)

        assert [item.kept for item in result.annotated] == [False, True, True, False]
        assert result.stats.reasons["price"] == 2

    def test_missing_price_counts_as_zero(self, make_order):
        order = make_order()
        del order["买家应付货款"]
        rules = FilterRules(price_range=(1, 100))

        assert evaluate_order(order, rules).category is ExclusionReason.PRICE

    def test_date_range_end_day_is_inclusive(self, make_order):
        rules = FilterRules(date_range=DateRange(start="2024-01-10", end="2024-01-15"))
        bounds = resolve_date_bounds(rules)

        assert evaluate_order(make_order(创建时间="2024-01-15 23:59:59"), rules, bounds).kept
        assert evaluate_order(make_order(创建时间="2024-01-10 00:00:00"), rules, bounds).kept
        late = evaluate_order(make_order(创建时间="2024-01-16 00:00:01"), rules, bounds)
        early = evaluate_order(make_order(创建时间="2024-01-09 12:00:00"), rules, bounds)
        assert late.category is ExclusionReason.DATE
        assert early.category is ExclusionReason.DATE

    def test_iso_time_bound_against_space_separated_dates(self, make_order):
        rules = FilterRules(
            date_range=DateRange(start="2024-01-10T08:00:00", end="2024-01-10T18:00:00")
        )
        bounds = resolve_date_bounds(rules)

        assert bounds == DateBounds(start="2024-01-10 08:00:00", end="2024-01-10 18:00:00")
        assert evaluate_order(make_order(创建时间="2024-01-10 09:00:00"), rules, bounds).kept
        assert evaluate_order(make_order(创建时间="2024-01-10T09:00:00"), rules, bounds).kept
        early = evaluate_order(make_order(创建时间="2024-01-10 07:59:59"), rules, bounds)
        late = evaluate_order(make_order(创建时间="2024-01-10 18:00:01"), rules, bounds)
        assert early.category is ExclusionReason.DATE
        assert late.category is ExclusionReason.DATE

    def test_missing_date_skips_rule(self, make_order):
        rules = FilterRules(date_range=DateRange(start="2024-02-01"))

        result = filter_orders([make_order(创建时间="")], rules)

        assert result.stats.kept == 1

    def test_invalid_bound_is_ignored_with_warning(self, make_order):
        rules = FilterRules(date_range=DateRange(start="not-a-date", end="2024-01-31"))
        diagnostics = Diagnostics()

        bounds = resolve_date_bounds(rules, diagnostics)

        assert bounds == DateBounds(start=None, end="2024-01-31")
        assert any("not-a-date" in w for w in diagnostics.warnings)

    def test_keyword_case_insensitive(self, make_order):
        rules = FilterRules(exclude_by_keyword="Sample")

        decision = evaluate_order(make_order(备注="free SAMPLE order"), rules)

        assert decision.category is ExclusionReason.KEYWORD
        assert "sample" in decision.reason

    def test_blank_keywords_exclude_nothing(self, make_order):
        rules = FilterRules(exclude_by_keyword=" , ")

        assert evaluate_order(make_order(备注="anything"), rules).kept


class TestFilterResult:
    def test_partition_and_stats(self, sample_orders):
        result = filter_orders(sample_orders)

        assert result.stats.total == 5
        assert result.stats.kept == 3
        assert result.stats.excluded == 2
        assert result.stats.kept + result.stats.excluded == result.stats.total
        assert sum(result.stats.reasons.values()) == result.stats.excluded
        assert result.stats.all_amount == pytest.approx(490)
        assert result.stats.kept_amount == pytest.approx(350)
        assert result.stats.average_kept_amount == pytest.approx(350 / 3)

    def test_kept_preserves_input_order_and_identity(self, sample_orders):
        result = filter_orders(sample_orders)

        assert result.kept == sample_orders[:3]
        assert result.kept[0] is sample_orders[0]
        assert [item.order for item in result.excluded] == sample_orders[3:]

    def test_orders_are_not_mutated(self, sample_orders):
        snapshot = [dict(order) for order in sample_orders]

        filter_orders(sample_orders, FilterRules(price_range=(0, 10)))

        assert sample_orders == snapshot

    def test_empty_input(self):
        result = filter_orders([])

        assert result.stats.total == 0
        assert result.stats.average_kept_amount == 0.0
        assert result.kept == []

    def test_missing_columns_warn(self):
        result = filter_orders([{"foo": "bar"}])

        assert any("status" in w for w in result.diagnostics.warnings)
        assert result.stats.reasons["status"] == 1


class TestHelpers:
    def test_collect_statuses_first_seen_order(self, sample_orders):
        assert collect_statuses(sample_orders) == ["交易成功", "等待买家付款"]

    def test_price_bounds_default(self):
        assert price_bounds([]) == (0, 1_000_000)

    def test_price_bounds_expand_beyond_default(self, make_order):
        orders = [make_order(买家应付货款="1500000.5"), make_order(买家应付货款="20")]

        assert price_bounds(orders) == (0, 1_500_001)
