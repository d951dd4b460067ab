"""定义订单聚合所需的数据模型与分页数据源抽象。"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, ContextManager, Dict, Optional, Protocol, Tuple

from ..config import StoreCredential
from ..exceptions import ParseError


@dataclass(frozen=True)
class LineItem:
    """
    订单中的单个商品行。

    属性:
        name (str): 商品名称。
        offer_id (str): 卖家货号，用于智能分组。
        price (str): 单价，保留接口返回的十进制字符串。
        currency_code (str): 币种代码，如 RUB/CNY。
        quantity (int): 件数。
        sku (int): 平台 SKU。
    """

    name: str
    offer_id: str
    price: str
    currency_code: str
    quantity: int
    sku: int

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "LineItem":
        if not isinstance(payload, dict):
            raise ParseError(f"无法解析商品行: {payload!r}")
        try:
            return cls(
                name=str(payload.get("name", "")),
                offer_id=str(payload["offer_id"]),
                price=str(payload.get("price", "0")),
                currency_code=str(payload.get("currency_code") or ""),
                quantity=int(payload.get("quantity") or 0),
                sku=int(payload.get("sku") or 0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(f"无法解析商品行: {payload!r}") from exc


@dataclass(frozen=True)
class AnalyticsData:
    """订单的分析信息，目前仅保留区域与城市。"""

    region: str
    city: str = ""


@dataclass(frozen=True)
class FinancialData:
    """
    订单的财务信息。

    属性:
        product_prices (Tuple[float, ...]): 每个商品行的结算价，顺序与商品行一致。
    """

    product_prices: Tuple[float, ...]


@dataclass(frozen=True)
class Order:
    """
    表示 Ozon 的一个 posting（发货单）。

    属性:
        posting_number (str): 发货单号，单店铺内唯一。
        order_id (int): 所属订单 ID。
        status (str): 平台侧状态。
        in_process_at (datetime): 下单时间（带时区）。
        products (Tuple[LineItem, ...]): 商品行。
        analytics_data (Optional[AnalyticsData]): 区域等分析信息。
        financial_data (Optional[FinancialData]): 财务信息。
        source_store_id (Optional[str]): 来源店铺，由聚合层写入。
    """

    posting_number: str
    order_id: int
    status: str
    in_process_at: datetime
    products: Tuple[LineItem, ...]
    analytics_data: Optional[AnalyticsData] = None
    financial_data: Optional[FinancialData] = None
    source_store_id: Optional[str] = None

    @property
    def identity(self) -> Tuple[Optional[str], str]:
        """跨店铺唯一的订单标识。"""
        return (self.source_store_id, self.posting_number)

    def with_store(self, store_id: str) -> "Order":
        return replace(self, source_store_id=store_id)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Order":
        """
        功能说明:
            将 `/v3/posting/fbs/list` 返回的 posting 字典转换为 Order。
        参数:
            payload (Dict[str, Any]): 单个 posting 的 JSON 对象。
        返回:
            Order: 解析后的订单，`source_store_id` 保持为空。
        """
        if not isinstance(payload, dict):
            raise ParseError(f"无法解析订单: {payload!r}")
        try:
            posting_number = str(payload["posting_number"])
            in_process_at = parse_timestamp(str(payload["in_process_at"]))
            products = tuple(
                LineItem.from_payload(item) for item in payload.get("products") or []
            )
            order_id = int(payload.get("order_id") or 0)
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(f"无法解析订单: {payload.get('posting_number', payload)!r}") from exc

        analytics = payload.get("analytics_data")
        analytics_data = None
        if analytics:
            if not isinstance(analytics, dict):
                raise ParseError(f"无法解析分析数据: {posting_number}")
            analytics_data = AnalyticsData(
                region=str(analytics.get("region") or ""),
                city=str(analytics.get("city") or ""),
            )

        financial = payload.get("financial_data")
        financial_data = None
        if financial:
            try:
                financial_data = FinancialData(
                    product_prices=tuple(
                        float(item.get("price") or 0) for item in financial.get("products") or []
                    )
                )
            except (TypeError, ValueError, AttributeError) as exc:
                raise ParseError(f"无法解析财务数据: {posting_number}") from exc

        return cls(
            posting_number=posting_number,
            order_id=order_id,
            status=str(payload.get("status", "")),
            in_process_at=in_process_at,
            products=products,
            analytics_data=analytics_data,
            financial_data=financial_data,
        )


def parse_timestamp(value: str) -> datetime:
    """解析 ISO 8601 时间戳，`Z` 后缀按 UTC 处理；无时区信息时同样视为 UTC。"""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class FetchWindow:
    """
    拉取订单的时间窗口（闭区间）。

    属性:
        since (datetime): 起始时间。
        to (datetime): 结束时间。
    """

    since: datetime
    to: datetime

    @classmethod
    def trailing(cls, days: int, now: Optional[datetime] = None) -> "FetchWindow":
        """
        功能说明:
            以当前时间为终点，构造回溯 `days` 天的窗口。
        参数:
            days (int): 回溯天数。
            now (Optional[datetime]): 指定“当前时间”，便于测试。
        返回:
            FetchWindow: `[now - days, now]`。
        """
        end = now or datetime.now(timezone.utc)
        return cls(since=end - timedelta(days=days), to=end)


@dataclass(frozen=True)
class Page:
    """一页订单以及是否还有下一页。"""

    orders: Tuple[Order, ...]
    has_more: bool


class PageSource(Protocol):
    """
    分页订单数据源需要实现的接口。

    真实实现见 :class:`~multistore_dashboard.data_sources.ozon_seller_api.OzonSellerApiPager`，
    测试中可替换为内存实现。
    """

    name: str

    def for_store(self) -> ContextManager["PageSource"]:
        """
        功能说明:
            打开单个店铺专用的数据源作用域，同一店铺的全部分页共用该作用域，
            不同店铺之间互不共享连接与 Cookie。
        """

    def fetch_page(
        self,
        credential: StoreCredential,
        window: FetchWindow,
        offset: int,
        limit: int,
    ) -> Page:
        """
        功能说明:
            拉取单个店铺在窗口内从 `offset` 开始的一页订单。
        异常:
            AuthError / RemoteError / TransportError / ParseError。
        """


class LabelSource(Protocol):
    """面单服务接口。"""

    def fetch_labels(self, credential: StoreCredential, posting_numbers: Tuple[str, ...]) -> bytes:
        """返回指定发货单的面单 PDF 二进制内容。"""
