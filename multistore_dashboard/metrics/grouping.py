"""智能分组：把单商品订单按货号归并为拣货清单。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Tuple

from ..data_sources.base import LineItem, Order
from .calculations import FALLBACK_CURRENCY


@dataclass(frozen=True)
class OrderGroup:
    """
    同一货号的单商品订单集合。

    属性:
        product_key (str): 分组键，即货号 offer_id。
        product (LineItem): 组内第一单的商品行，名称与单价均以它为准。
        currency (str): 第一单的币种。
        orders (Tuple[Order, ...]): 组内订单，保持输入顺序。
    """

    product_key: str
    product: LineItem
    currency: str
    orders: Tuple[Order, ...]

    @property
    def size(self) -> int:
        return len(self.orders)

    @property
    def total_quantity(self) -> int:
        """组内商品总件数，件数缺失时按 1 计。"""
        return sum(order.products[0].quantity or 1 for order in self.orders)

    def packed_count(self, packed: AbstractSet[str]) -> int:
        return sum(1 for order in self.orders if order.posting_number in packed)

    def unpacked_count(self, packed: AbstractSet[str]) -> int:
        return self.size - self.packed_count(packed)

    def all_packed(self, packed: AbstractSet[str]) -> bool:
        return self.unpacked_count(packed) == 0

    @property
    def posting_numbers(self) -> List[str]:
        return [order.posting_number for order in self.orders]


def build_groups(orders: Iterable[Order]) -> Tuple[OrderGroup, ...]:
    """
    功能说明:
        只保留恰好一个商品行的订单，按货号分组，并按组内订单数倒序排列；
        订单数相同的组保持首次出现的顺序。
    参数:
        orders (Iterable[Order]): 合并后的订单。
    返回:
        Tuple[OrderGroup, ...]: 排序后的分组。
    """
    firsts: Dict[str, LineItem] = {}
    members: Dict[str, List[Order]] = {}
    for order in orders:
        if len(order.products) != 1:
            continue
        product = order.products[0]
        key = product.offer_id
        if key not in firsts:
            firsts[key] = product
            members[key] = []
        members[key].append(order)

    groups = [
        OrderGroup(
            product_key=key,
            product=product,
            currency=product.currency_code or FALLBACK_CURRENCY,
            orders=tuple(members[key]),
        )
        for key, product in firsts.items()
    ]
    # sorted 是稳定排序，dict 保留插入顺序，因此并列时按首次出现排列。
    return tuple(sorted(groups, key=lambda group: group.size, reverse=True))


def split_packed(
    group: OrderGroup, packed: AbstractSet[str]
) -> Tuple[Tuple[Order, ...], Tuple[Order, ...]]:
    """将组内订单拆分为（待打包，已打包）两部分。"""
    unpacked = tuple(order for order in group.orders if order.posting_number not in packed)
    done = tuple(order for order in group.orders if order.posting_number in packed)
    return unpacked, done


def toggle_packed(
    packed: AbstractSet[str], posting_numbers: Iterable[str], status: bool
) -> FrozenSet[str]:
    """
    功能说明:
        返回新的已打包集合，不修改传入的集合。
    参数:
        packed (AbstractSet[str]): 当前已打包的发货单号。
        posting_numbers (Iterable[str]): 需要变更的发货单号。
        status (bool): True 标记为已打包，False 撤销。
    返回:
        FrozenSet[str]: 更新后的集合，由调用方负责持久化。
    """
    ids = set(posting_numbers)
    if status:
        return frozenset(packed) | ids
    return frozenset(packed) - ids
