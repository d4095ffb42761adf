"""Field resolution over loosely-typed order and product records.

Source sheets name the same column in many ways (Taobao exports, Jushuitan
catalogs, hand-made English sheets). Each logical field is described by an
ordered alias list: the first alias holding a non-empty value wins, so
preferred column names come before legacy/fallback names.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

# Order-side logical fields (preferred column first)
ORDER_FIELDS: dict[str, tuple[str, ...]] = {
    "external_code": ("外部系统编号", "商品编码", "product_code"),
    "product_name": ("商品名称", "product_name"),
    "selling_price": ("商家实收金额", "买家应付货款", "成交价格", "实付金额", "price"),
    "order_amount": (
        "买家应付货款",
        "成交价格",
        "实付金额",
        "订单金额",
        "总金额",
        "金额",
        "price",
        "amount",
    ),
    "quantity": ("买家购买数量", "数量", "quantity"),
    "status": ("订单状态", "status"),
    "refund_status": ("退款状态", "refund_status"),
    "contact_remarks": ("联系方式备注", "contact_remarks"),
    "remarks": ("备注", "remarks"),
    "order_id": ("订单号", "订单编号", "order_id"),
    "created_at": ("创建时间", "date"),
}

# Product-side logical fields
PRODUCT_FIELDS: dict[str, tuple[str, ...]] = {
    "code": ("商品编码", "编码", "code"),
    "name": ("商品名称", "product_name"),
    "cost": ("成本价", "成本", "cost"),
    "purchase_price": ("进价", "purchase_price"),
    "supplier": ("供应商", "supplier"),
}

_NUMERIC_NOISE = re.compile(r"[¥$,，\s]")

_PRICE_HINTS = ("买家", "货款", "价格", "金额", "价")
_PRICE_HINTS_EN = ("price", "amount", "total", "pay")


def is_missing(value: Any) -> bool:
    """True for absent values: None, blank strings and NaN cells.

    Numeric zero is a real value and is never treated as missing.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def parse_number(value: Any, default: float | None = 0.0) -> float | None:
    """Parse a raw cell into a float.

    Strips currency symbols (¥, $), thousands separators (ASCII and
    full-width commas) and whitespace. Returns ``default`` when the value is
    missing, unparseable or not finite.
    """
    if is_missing(value) or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _NUMERIC_NOISE.sub("", str(value))
        try:
            number = float(cleaned)
        except ValueError:
            return default
    if not math.isfinite(number):
        return default
    return number


def resolve(
    record: Mapping[str, Any],
    aliases: Sequence[str],
    *,
    numeric: bool = False,
    default: Any = None,
) -> Any:
    """Return the first non-empty value among ``aliases``.

    Args:
        record: Raw order or product row
        aliases: Candidate column names, highest priority first
        numeric: Coerce the hit to float (see ``parse_number``)
        default: Returned when no alias holds a value, or parsing fails

    Returns:
        The raw value (text stripped), a float when ``numeric``, or ``default``
    """
    for alias in aliases:
        value = record.get(alias)
        if is_missing(value):
            continue
        if numeric:
            return parse_number(value, default)
        return value.strip() if isinstance(value, str) else value
    return default


def resolve_text(record: Mapping[str, Any], aliases: Sequence[str], default: str = "") -> str:
    """Resolve a field as stripped text."""
    value = resolve(record, aliases)
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        # Excel hands numeric codes back as floats (1001.0)
        return str(int(value))
    return str(value).strip()


def resolve_number(
    record: Mapping[str, Any], aliases: Sequence[str], default: float | None = 0.0
) -> float | None:
    return resolve(record, aliases, numeric=True, default=default)


def matched_alias(record: Mapping[str, Any], aliases: Sequence[str]) -> str | None:
    """Name of the alias that ``resolve`` would read, if any."""
    for alias in aliases:
        if not is_missing(record.get(alias)):
            return alias
    return None


@dataclass
class Diagnostics:
    """Structured notes returned alongside stage results."""

    warnings: list[str] = field(default_factory=list)
    fields: dict[str, str | None] = field(default_factory=dict)

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def merge(self, other: Diagnostics) -> Diagnostics:
        merged = Diagnostics(list(self.warnings), dict(self.fields))
        for message in other.warnings:
            merged.warn(message)
        merged.fields.update(other.fields)
        return merged


def find_price_like_columns(columns: Iterable[str]) -> list[str]:
    """Columns whose header looks like a money amount."""
    found = []
    for column in columns:
        text = str(column)
        lowered = text.lower()
        if any(hint in text for hint in _PRICE_HINTS) or any(
            hint in lowered for hint in _PRICE_HINTS_EN
        ):
            found.append(column)
    return found


def describe_fields(
    records: Sequence[Mapping[str, Any]],
    table: Mapping[str, Sequence[str]] = ORDER_FIELDS,
    *,
    prefix: str = "",
) -> Diagnostics:
    """Report which column resolved each logical field on the first record.

    When no price alias is present on an order sheet, the warnings list the
    columns that look like amounts so the alias table can be extended.
    """
    diagnostics = Diagnostics()
    if not records:
        return diagnostics

    sample = records[0]
    for logical, aliases in table.items():
        hit = matched_alias(sample, aliases)
        diagnostics.fields[f"{prefix}{logical}"] = hit
        if hit is None and not any(alias in sample for alias in aliases):
            diagnostics.warn(f"{prefix}{logical}: none of {', '.join(aliases)} present")

    if table is ORDER_FIELDS and diagnostics.fields.get(f"{prefix}order_amount") is None:
        candidates = find_price_like_columns(sample.keys())
        if candidates:
            diagnostics.warn(f"possible price columns: {', '.join(candidates)}")

    return diagnostics
