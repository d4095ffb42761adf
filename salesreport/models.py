"""Sales report Pydantic models and shared enums.

Run configuration (filter rules, match settings) is validated here; the
records flowing through the pipeline stay plain string-keyed mappings.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REQUIRED_STATUS = "交易成功"
DEFAULT_REFUND_STATUS = "退款成功"
DEFAULT_REMARKS_MARKER = "(收)"

FUZZY_THRESHOLD_MIN = 50
FUZZY_THRESHOLD_MAX = 100


class ExclusionReason(str, Enum):
    """Rule that removed an order from the kept set (evaluation order)."""

    STATUS = "status"
    REFUND = "refund"
    REMARKS = "remarks"
    PRICE = "price"
    DATE = "date"
    KEYWORD = "keyword"


class MatchStatus(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"


class MatchMethod(str, Enum):
    """How an order was linked to a catalog product."""

    CODE = "code"
    NAME_EXACT = "name_exact"
    NAME_FUZZY = "name_fuzzy"
    NONE = "none"


class MarginBucket(str, Enum):
    """Profit-to-revenue classification of an order."""

    HIGH = "high"  # profit >= 25% of revenue
    MID = "mid"  # 15-25%
    LOW = "low"  # 0-15%
    LOSS = "loss"  # profit <= 0


class DateRange(BaseModel):
    """Inclusive ISO-like date bounds; either side may be empty."""

    model_config = ConfigDict(frozen=True)

    start: str = ""
    end: str = ""

    @field_validator("start", "end", mode="before")
    @classmethod
    def _blank_none(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, date):
            return value.isoformat()
        return str(value).strip()


class FilterRules(BaseModel):
    """Order filter configuration.

    The status/refund/remarks rules are always applied; ``price_range``,
    ``date_range`` and ``exclude_by_keyword`` are optional extras.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    required_status: str = Field(DEFAULT_REQUIRED_STATUS, alias="requiredStatus")
    refund_status: str = Field(DEFAULT_REFUND_STATUS, alias="refundStatus")
    remarks_marker: str = Field(DEFAULT_REMARKS_MARKER, alias="remarksMarker")
    exclude_by_keyword: str = Field("", alias="excludeByKeyword")
    price_range: tuple[float, float] | None = Field(None, alias="priceRange")
    date_range: DateRange | None = Field(None, alias="dateRange")

    @field_validator("exclude_by_keyword", mode="before")
    @classmethod
    def _join_keywords(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return str(value)

    @property
    def keywords(self) -> list[str]:
        """Lower-cased, non-blank exclusion keywords."""
        return [
            kw.strip().lower()
            for kw in self.exclude_by_keyword.split(",")
            if kw.strip()
        ]


class MatchSettings(BaseModel):
    """Cost matching configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strategy: Literal["code", "name", "hybrid"] = "code"
    fuzzy_threshold: int = Field(80, alias="fuzzyThreshold")
    max_fuzzy_comparisons: int = Field(1000, alias="maxFuzzyComparisons")
    cost_basis: Literal["cost", "purchase"] = Field("cost", alias="costBasis")

    @field_validator("fuzzy_threshold", mode="before")
    @classmethod
    def _clamp_threshold(cls, value: Any) -> int:
        try:
            threshold = round(float(value))
        except (TypeError, ValueError, OverflowError):
            return 80
        return max(FUZZY_THRESHOLD_MIN, min(FUZZY_THRESHOLD_MAX, threshold))

    @field_validator("max_fuzzy_comparisons")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)
