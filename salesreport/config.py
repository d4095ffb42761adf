"""Sales report configuration management.

Loads configuration from environment variables with sensible defaults.
Defaults follow the Taobao/Jushuitan export conventions (CNY, Chinese
column headers, "交易成功" as the settled order status).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salesreport.models import (
    DEFAULT_REFUND_STATUS,
    DEFAULT_REMARKS_MARKER,
    DEFAULT_REQUIRED_STATUS,
    FilterRules,
    MatchSettings,
)

# Load .env file if present
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    return value if value in choices else default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass
class FilterConfig:
    """Mandatory order retention/exclusion rule values."""

    required_status: str = DEFAULT_REQUIRED_STATUS
    refund_status: str = DEFAULT_REFUND_STATUS
    remarks_marker: str = DEFAULT_REMARKS_MARKER
    exclude_keywords: str = ""


@dataclass
class MatchingConfig:
    """Cost matching strategy and fuzzy search bounds."""

    strategy: str = "code"
    fuzzy_threshold: int = 80
    max_fuzzy_comparisons: int = 1000  # cap on catalog names scanned per order
    cost_basis: str = "cost"  # cost or purchase


@dataclass
class ReportConfig:
    """Aggregation and report presentation settings."""

    top_products: int = 8
    product_name_max_length: int = 20
    high_margin_ratio: float = 0.25
    mid_margin_ratio: float = 0.15
    risk_sample_limit: int = 30
    chunk_size: int = 500
    chart_row_limit: int = 1000
    currency_symbol: str = "¥"


@dataclass
class AppConfig:
    """Root application configuration."""

    log_level: str = "INFO"
    log_format: str = "text"  # json or text

    filter: FilterConfig = field(default_factory=FilterConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Nothing is required; malformed numeric values fall back to defaults.
        """
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            filter=FilterConfig(
                required_status=os.getenv("SALES_REQUIRED_STATUS", DEFAULT_REQUIRED_STATUS),
                refund_status=os.getenv("SALES_REFUND_STATUS", DEFAULT_REFUND_STATUS),
                remarks_marker=os.getenv("SALES_REMARKS_MARKER", DEFAULT_REMARKS_MARKER),
                exclude_keywords=os.getenv("SALES_EXCLUDE_KEYWORDS", ""),
            ),
            matching=MatchingConfig(
                strategy=_env_choice("MATCH_STRATEGY", "code", ("code", "name", "hybrid")),
                fuzzy_threshold=_env_int("FUZZY_THRESHOLD", 80),
                max_fuzzy_comparisons=_env_int("MAX_FUZZY_COMPARISONS", 1000),
                cost_basis=_env_choice("COST_BASIS", "cost", ("cost", "purchase")),
            ),
            report=ReportConfig(
                top_products=_env_int("REPORT_TOP_PRODUCTS", 8),
                product_name_max_length=_env_int("REPORT_PRODUCT_NAME_MAX_LENGTH", 20),
                high_margin_ratio=_env_float("REPORT_HIGH_MARGIN_RATIO", 0.25),
                mid_margin_ratio=_env_float("REPORT_MID_MARGIN_RATIO", 0.15),
                risk_sample_limit=_env_int("REPORT_RISK_SAMPLE_LIMIT", 30),
                chunk_size=_env_int("PIPELINE_CHUNK_SIZE", 500),
                chart_row_limit=_env_int("REPORT_CHART_ROW_LIMIT", 1000),
                currency_symbol=os.getenv("REPORT_CURRENCY_SYMBOL", "¥"),
            ),
        )

    def filter_rules(self) -> FilterRules:
        """Default filter rules built from the environment."""
        return FilterRules(
            required_status=self.filter.required_status,
            refund_status=self.filter.refund_status,
            remarks_marker=self.filter.remarks_marker,
            exclude_by_keyword=self.filter.exclude_keywords,
        )

    def match_settings(self) -> MatchSettings:
        """Default match settings built from the environment."""
        return MatchSettings(
            strategy=self.matching.strategy,
            fuzzy_threshold=self.matching.fuzzy_threshold,
            max_fuzzy_comparisons=self.matching.max_fuzzy_comparisons,
            cost_basis=self.matching.cost_basis,
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment."""
    global _config
    _config = None
