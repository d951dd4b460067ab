"""提供多币种营收汇总、日维度序列与客单价的计算逻辑。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional, Tuple

from ..data_sources.base import Order
from ..utils.dates import month_day_label, trailing_days

SERIES_DAYS = 15
FALLBACK_CURRENCY = "RUB"


@dataclass(frozen=True)
class RevenueBucket:
    """
    单一币种的营收汇总。

    属性:
        currency (str): 币种代码。
        total_amount (float): 该币种订单的营收合计。
        order_count (int): 该币种订单数，至少为 1。
    """

    currency: str
    total_amount: float
    order_count: int

    @property
    def average_order_value(self) -> int:
        return round_half_up(self.total_amount / self.order_count)


@dataclass(frozen=True)
class DailyPoint:
    """
    图表上的一个日维度点。

    属性:
        date_label (str): `MM-DD` 格式的日期标签。
        amount (float): 主营币种当日营收。
        currency (str): 主营币种。
    """

    date_label: str
    amount: float
    currency: str


@dataclass(frozen=True)
class OrderStats:
    """
    封装一次统计的全部结果。

    属性:
        buckets (Tuple[RevenueBucket, ...]): 按首次出现顺序排列的币种汇总。
        series (Tuple[DailyPoint, ...]): 最近 15 天的主营币种营收序列。
        dominant_currency (Optional[str]): 营收最高的币种，无订单营收时为 None。
        total_orders (int): 订单总数（含无商品行的订单）。
    """

    buckets: Tuple[RevenueBucket, ...]
    series: Tuple[DailyPoint, ...]
    dominant_currency: Optional[str]
    total_orders: int

    def bucket_for(self, currency: str) -> Optional[RevenueBucket]:
        for bucket in self.buckets:
            if bucket.currency == currency:
                return bucket
        return None

    @property
    def averages(self) -> Dict[str, int]:
        """各币种的客单价。"""
        return {bucket.currency: bucket.average_order_value for bucket in self.buckets}


def round_half_up(value: float) -> int:
    """四舍五入到整数（.5 向上进位）。"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def order_revenue(order: Order) -> float:
    """
    功能说明:
        计算单个订单的营收。优先使用财务数据中的结算价合计，缺失时回退为商品单价之和。
        回退公式不乘以件数，与现有报表口径保持一致。
    参数:
        order (Order): 订单。
    返回:
        float: 订单营收。
    """
    if order.financial_data and order.financial_data.product_prices:
        return sum(order.financial_data.product_prices)
    return sum(float(item.price) for item in order.products)


def order_currency(order: Order) -> Optional[str]:
    """订单币种取第一个商品行的币种；没有商品行时返回 None。"""
    if not order.products:
        return None
    return order.products[0].currency_code or FALLBACK_CURRENCY


def compute_stats(orders: Iterable[Order], *, today: Optional[date] = None) -> OrderStats:
    """
    功能说明:
        汇总订单，得到分币种营收、主营币种以及最近 15 天的营收序列。
    参数:
        orders (Iterable[Order]): 合并后的订单。
        today (Optional[date]): 序列截止日期，默认 UTC 当天；订单同样按 UTC 日期归档。
    返回:
        OrderStats: 统计结果。
    """
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    daily: Dict[Tuple[date, str], float] = {}
    total_orders = 0

    for order in orders:
        total_orders += 1
        currency = order_currency(order)
        if currency is None:
            continue
        revenue = order_revenue(order)
        totals[currency] = totals.get(currency, 0.0) + revenue
        counts[currency] = counts.get(currency, 0) + 1
        key = (order.in_process_at.astimezone(timezone.utc).date(), currency)
        daily[key] = daily.get(key, 0.0) + revenue

    buckets = tuple(
        RevenueBucket(currency=currency, total_amount=amount, order_count=counts[currency])
        for currency, amount in totals.items()
    )
    dominant = _dominant_currency(buckets)
    label_currency = dominant or FALLBACK_CURRENCY
    series = tuple(
        DailyPoint(
            date_label=month_day_label(day),
            amount=daily.get((day, label_currency), 0.0) if dominant else 0.0,
            currency=label_currency,
        )
        for day in trailing_days(SERIES_DAYS, today or datetime.now(timezone.utc).date())
    )
    return OrderStats(
        buckets=buckets,
        series=series,
        dominant_currency=dominant,
        total_orders=total_orders,
    )


def _dominant_currency(buckets: Tuple[RevenueBucket, ...]) -> Optional[str]:
    # 严格大于才替换，并列时保留先出现的币种。
    dominant: Optional[str] = None
    best = float("-inf")
    for bucket in buckets:
        if bucket.total_amount > best:
            best = bucket.total_amount
            dominant = bucket.currency
    return dominant
