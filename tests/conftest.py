"""Pytest configuration and fixtures for sales report tests.

Provides sample order sheets and product catalogs using the Taobao export
column names.
"""

from __future__ import annotations

from typing import Any

import pytest

from salesreport.config import reset_config


def build_order(**overrides: Any) -> dict[str, Any]:
    """Settled order row; keyword arguments replace columns."""
    order: dict[str, Any] = {
        "订单编号": "T0001",
        "订单状态": "交易成功",
        "退款状态": "",
        "联系方式备注": "",
        "备注": "",
        "外部系统编号": "SKU-001",
        "商品名称": "蓝色T恤",
        "买家应付货款": "100",
        "商家实收金额": "100",
        "买家购买数量": "1",
        "创建时间": "2024-01-15 10:30:00",
    }
    order.update(overrides)
    return order


@pytest.fixture
def make_order():
    """Factory for settled order rows."""
    return build_order


@pytest.fixture(autouse=True)
def clean_config():
    """Each test reads configuration from its own environment."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_orders() -> list[dict[str, Any]]:
    """Five orders: three kept, one refunded, one pending."""
    return [
        build_order(订单编号="T0001", 外部系统编号="SKU-001", 商品名称="蓝色T恤",
                   买家应付货款="100", 商家实收金额="100"),
        build_order(订单编号="T0002", 外部系统编号="SKU-002", 商品名称="红色卫衣",
                   买家应付货款="200", 商家实收金额="200", 买家购买数量="2"),
        build_order(订单编号="T0003", 外部系统编号="SKU-404", 商品名称="绿色帽子",
                   买家应付货款="50", 商家实收金额="50"),
        build_order(订单编号="T0004", 退款状态="退款成功", 买家应付货款="80", 商家实收金额="80"),
        build_order(订单编号="T0005", 订单状态="等待买家付款", 买家应付货款="60", 商家实收金额="60"),
    ]


@pytest.fixture
def sample_products() -> list[dict[str, Any]]:
    """Catalog covering SKU-001 and SKU-002."""
    return [
        {"商品编码": "SKU-001", "商品名称": "蓝色T恤", "成本价": "40", "进价": "35", "供应商": "杭州织造"},
        {"商品编码": "SKU-002", "商品名称": "红色卫衣", "成本价": "60", "进价": "55", "供应商": ""},
    ]
