"""Rules file loader for report runs.

Reads filter and matching options from YAML:

    filter:
      excludeByKeyword: "测试,样品"
      priceRange: [10, 5000]
      dateRange: {start: "2024-01-01", end: "2024-03-31"}
    matching:
      strategy: hybrid
      fuzzyThreshold: 85

Omitted options fall back to the environment-driven defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel

from salesreport.config import AppConfig, get_config
from salesreport.models import FilterRules, MatchSettings

logger = logging.getLogger(__name__)


def _field_names(model: type[BaseModel], section: dict) -> dict:
    """Map camelCase option names onto model field names."""
    aliases = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    return {aliases.get(key, key): value for key, value in section.items()}


def load_rules_file(
    config_path: Path, config: AppConfig | None = None
) -> tuple[FilterRules, MatchSettings]:
    """Load filter rules and match settings from a YAML file.

    Args:
        config_path: Path to YAML rules file
        config: Base configuration supplying defaults

    Returns:
        Tuple of (FilterRules, MatchSettings)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the document or one of its sections is not a mapping
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Rules file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        document = yaml.safe_load(f) or {}

    if not isinstance(document, dict):
        raise ValueError("Invalid rules file: expected a mapping at top level")

    config = config or get_config()
    filter_section = document.get("filter") or {}
    matching_section = document.get("matching") or {}
    for name, section in (("filter", filter_section), ("matching", matching_section)):
        if not isinstance(section, dict):
            raise ValueError(f"Invalid rules file: '{name}' must be a mapping")

    filter_rules = FilterRules.model_validate(
        {**config.filter_rules().model_dump(), **_field_names(FilterRules, filter_section)}
    )
    match_settings = MatchSettings.model_validate(
        {**config.match_settings().model_dump(), **_field_names(MatchSettings, matching_section)}
    )

    logger.info(
        f"Loaded rules from {config_path}: strategy={match_settings.strategy}, "
        f"keywords={filter_rules.keywords}"
    )
    return filter_rules, match_settings
