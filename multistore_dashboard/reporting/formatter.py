"""提供统计结果、拣货清单的结构化与文本格式化工具。"""

from __future__ import annotations

from datetime import date
from typing import AbstractSet, Any, Dict, Iterable, List, Sequence

from ..data_sources.base import Order
from ..metrics.calculations import OrderStats
from ..metrics.grouping import OrderGroup
from ..pipeline.fetcher import StoreFailure

# Excel 依赖 BOM 识别 UTF-8。
BOM = "\ufeff"
PICK_LIST_HEADER = "货号 (Offer ID),SKU,商品名称,单价,币种,总数量 (件),待打包订单,已打包订单"

CURRENCY_SYMBOLS = {"RUB": "₽", "CNY": "¥", "USD": "$", "EUR": "€", "KZT": "₸", "BYN": "Br"}


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def to_delimited_text(groups: Sequence[OrderGroup], packed: AbstractSet[str]) -> str:
    """
    功能说明:
        将智能分组导出为带 BOM 的 CSV 文本，每组一行。
    参数:
        groups (Sequence[OrderGroup]): 分组结果。
        packed (AbstractSet[str]): 已打包的发货单号。
    返回:
        str: CSV 文本；没有分组时只包含表头。
    """
    lines = [PICK_LIST_HEADER]
    for group in groups:
        product = group.product
        packed_count = group.packed_count(packed)
        lines.append(
            ",".join(
                [
                    product.offer_id,
                    str(product.sku),
                    _quote(product.name),
                    product.price,
                    group.currency,
                    str(group.total_quantity),
                    str(group.size - packed_count),
                    str(packed_count),
                ]
            )
        )
    return BOM + "".join(f"{line}\n" for line in lines)


def pick_list_filename(today: date) -> str:
    return f"ozon_smart_picking_list_{today.isoformat()}.csv"


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, currency)


def stats_to_dict(stats: OrderStats) -> Dict[str, object]:
    """
    功能说明:
        将 OrderStats 转换为可 JSON 序列化的字典。
    参数:
        stats (OrderStats): 统计结果。
    返回:
        Dict[str, object]: 序列化后的统计结构。
    """
    return {
        "total_orders": stats.total_orders,
        "dominant_currency": stats.dominant_currency,
        "revenue": [
            {
                "currency": bucket.currency,
                "amount": round(bucket.total_amount, 2),
                "orders": bucket.order_count,
                "average_order_value": bucket.average_order_value,
            }
            for bucket in stats.buckets
        ],
        "series": [
            {"date": point.date_label, "amount": round(point.amount, 2), "currency": point.currency}
            for point in stats.series
        ],
    }


def groups_to_dict(groups: Sequence[OrderGroup], packed: AbstractSet[str]) -> List[Dict[str, Any]]:
    return [
        {
            "offer_id": group.product.offer_id,
            "sku": group.product.sku,
            "name": group.product.name,
            "price": group.product.price,
            "currency": group.currency,
            "orders": group.size,
            "total_quantity": group.total_quantity,
            "unpacked": group.unpacked_count(packed),
            "packed": group.packed_count(packed),
            "posting_numbers": group.posting_numbers,
        }
        for group in groups
    ]


def orders_to_payload(orders: Iterable[Order]) -> List[Dict[str, Any]]:
    return [
        {
            "posting_number": order.posting_number,
            "order_id": order.order_id,
            "status": order.status,
            "in_process_at": order.in_process_at.isoformat(),
            "store": order.source_store_id,
            "region": order.analytics_data.region if order.analytics_data else None,
            "products": [
                {
                    "name": item.name,
                    "offer_id": item.offer_id,
                    "price": item.price,
                    "currency_code": item.currency_code,
                    "quantity": item.quantity,
                    "sku": item.sku,
                }
                for item in order.products
            ],
        }
        for order in orders
    ]


def format_text_report(
    stats: OrderStats,
    groups: Sequence[OrderGroup],
    packed: AbstractSet[str],
    warnings: Sequence[StoreFailure] = (),
    *,
    top_groups: int = 10,
) -> str:
    """
    功能说明:
        生成适合在控制台展示的销售概览文本。
    参数:
        stats (OrderStats): 统计结果。
        groups (Sequence[OrderGroup]): 智能分组。
        packed (AbstractSet[str]): 已打包的发货单号。
        warnings (Sequence[StoreFailure]): 失败店铺告警。
        top_groups (int): 最多展示的分组数量。
    返回:
        str: 多行字符串。
    """
    lines: List[str] = []
    for warning in warnings:
        lines.append(f"! {warning}")
    lines.append(f"Total orders: {stats.total_orders}")
    if not stats.buckets:
        lines.append("No revenue records available.")
    for bucket in stats.buckets:
        symbol = currency_symbol(bucket.currency)
        lines.append(
            f"Revenue {bucket.currency}: {symbol} {bucket.total_amount:,.2f} "
            f"({bucket.order_count} orders, AOV {symbol} {bucket.average_order_value:,})"
        )
    if stats.dominant_currency:
        lines.append(f"Daily revenue ({stats.dominant_currency}):")
        lines.append(
            "  " + ", ".join(f"{point.date_label} {point.amount:,.2f}" for point in stats.series)
        )

    if not groups:
        lines.append("No single-item groups.")
        return "\n".join(lines)

    lines.append("Pick list (single-item orders by offer):")
    for idx, group in enumerate(groups[:top_groups], start=1):
        marker = " [all packed]" if group.all_packed(packed) else ""
        lines.append(
            f"{idx}. {group.product.name} ({group.product.offer_id}) - {group.size} orders, "
            f"{group.unpacked_count(packed)} to pack, {group.packed_count(packed)} packed{marker}"
        )
    return "\n".join(lines)
