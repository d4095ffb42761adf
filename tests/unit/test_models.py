"""Unit tests for run configuration models."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from salesreport.models import DateRange, FilterRules, MatchSettings


class TestFilterRules:
    def test_defaults(self):
        rules = FilterRules()

        assert rules.required_status == "交易成功"
        assert rules.refund_status == "退款成功"
        assert rules.remarks_marker == "(收)"
        assert rules.price_range is None
        assert rules.date_range is None
        assert rules.keywords == []

    def test_camel_case_aliases(self):
        rules = FilterRules.model_validate(
            {
                "excludeByKeyword": "测试, 样品",
                "priceRange": [10, 500],
                "dateRange": {"start": "2024-01-01", "end": "2024-01-31"},
            }
        )

        assert rules.keywords == ["测试", "样品"]
        assert rules.price_range == (10.0, 500.0)
        assert rules.date_range.end == "2024-01-31"

    def test_blank_keywords_are_ignored(self):
        rules = FilterRules(exclude_by_keyword=" ,TEST,, ")

        assert rules.keywords == ["test"]

    def test_keyword_list_is_joined(self):
        assert FilterRules(exclude_by_keyword=["a", "b"]).exclude_by_keyword == "a,b"

    def test_rules_are_frozen(self):
        with pytest.raises(ValidationError):
            FilterRules().required_status = "x"


class TestDateRange:
    def test_accepts_date_objects_and_none(self):
        bounds = DateRange(start=date(2024, 3, 1), end=None)

        assert bounds.start == "2024-03-01"
        assert bounds.end == ""


class TestMatchSettings:
    def test_defaults(self):
        settings = MatchSettings()

        assert settings.strategy == "code"
        assert settings.fuzzy_threshold == 80
        assert settings.max_fuzzy_comparisons == 1000
        assert settings.cost_basis == "cost"

    @pytest.mark.parametrize(
        "raw, expected",
        [(10, 50), (150, 100), (85, 85), ("90", 90), ("bad", 80), (80.9, 81), ("84.6", 85)],
    )
    def test_threshold_is_clamped(self, raw, expected):
        assert MatchSettings(fuzzy_threshold=raw).fuzzy_threshold == expected

    def test_fractional_threshold_is_not_truncated(self):
        """A score just above 80 must not pass an 80.9 threshold."""
        settings = MatchSettings(strategy="name", fuzzy_threshold=80.9)

        assert settings.fuzzy_threshold > 80.5

    def test_infinite_threshold_uses_default(self):
        assert MatchSettings(fuzzy_threshold=float("inf")).fuzzy_threshold == 80

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            MatchSettings(strategy="sku")

    def test_negative_cap_becomes_zero(self):
        assert MatchSettings(max_fuzzy_comparisons=-5).max_fuzzy_comparisons == 0
