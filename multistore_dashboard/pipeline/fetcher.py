"""单店铺的分页拉取：逐页迭代并折叠为完整的订单列表。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Tuple

from ..config import StoreCredential
from ..data_sources.base import FetchWindow, Order, Page, PageSource
from ..data_sources.ozon_seller_api import PAGE_SIZE
from ..exceptions import DashboardError

logger = logging.getLogger(__name__)

# 单店铺分页偏移量上限，超过即视为拉取完成。
MAX_OFFSET = 10_000


@dataclass(frozen=True)
class StoreFailure:
    """
    单个店铺拉取失败的告警。

    属性:
        store_id (str): 失败店铺的 Client-Id。
        message (str): 失败原因。
    """

    store_id: str
    message: str

    def __str__(self) -> str:
        return f"店铺 [{self.store_id}] 数据获取失败: {self.message}。请检查凭证是否正确。"


@dataclass(frozen=True)
class StoreFetchResult:
    """单店铺拉取结果；失败时 `orders` 为空且 `failure` 非空。"""

    store_id: str
    orders: Tuple[Order, ...] = ()
    failure: Optional[StoreFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def iter_pages(
    source: PageSource,
    credential: StoreCredential,
    window: FetchWindow,
    page_size: int = PAGE_SIZE,
) -> Iterator[Page]:
    """
    功能说明:
        从偏移量 0 开始逐页拉取，直到没有下一页或偏移量超过上限。
    参数:
        source (PageSource): 分页数据源。
        credential (StoreCredential): 店铺凭证。
        window (FetchWindow): 固定的查询窗口。
        page_size (int): 每页数量。
    返回:
        Iterator[Page]: 惰性生成的页序列，每次调用都从头开始。
    """
    offset = 0
    has_more = True
    while has_more and offset <= MAX_OFFSET:
        page = source.fetch_page(credential, window, offset, page_size)
        yield page
        has_more = page.has_more
        offset += page_size


def fetch_all_for_store(
    source: PageSource,
    credential: StoreCredential,
    window_days: int,
    *,
    now: Optional[datetime] = None,
) -> StoreFetchResult:
    """
    功能说明:
        拉取单个店铺窗口内的全部订单，并写入来源店铺标识。
        任意一页失败都会丢弃已拉取的部分，转换为失败结果而不是抛出异常。
    参数:
        source (PageSource): 分页数据源。
        credential (StoreCredential): 店铺凭证。
        window_days (int): 回溯天数，窗口在调用开始时计算一次。
        now (Optional[datetime]): 指定“当前时间”，便于测试。
    返回:
        StoreFetchResult: 成功时包含订单，失败时包含告警。
    """
    window = FetchWindow.trailing(window_days, now)
    store_id = credential.store_id
    try:
        collected: Tuple[Order, ...] = ()
        with source.for_store() as store_source:
            for page in iter_pages(store_source, credential, window):
                collected += page.orders
    except DashboardError as exc:
        failure = StoreFailure(store_id=store_id, message=str(exc) or "连接失败")
        logger.warning("Failed to fetch for store %s: %s", store_id, failure.message)
        return StoreFetchResult(store_id=store_id, failure=failure)

    logger.debug("店铺 %s 共拉取 %s 单", store_id, len(collected))
    return StoreFetchResult(
        store_id=store_id,
        orders=tuple(order.with_store(store_id) for order in collected),
    )
