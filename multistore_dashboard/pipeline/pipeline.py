"""多店铺订单聚合主流程：并发拉取、合并排序，并产出统计与智能分组。"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..config import AppConfig, StoreCredential
from ..data_sources.base import Order, PageSource
from ..data_sources.ozon_seller_api import OzonSellerApiPager
from ..metrics.calculations import OrderStats, compute_stats
from ..metrics.grouping import OrderGroup, build_groups
from .fetcher import StoreFailure, StoreFetchResult, fetch_all_for_store

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 15


@dataclass(frozen=True)
class AggregationResult:
    """多店铺聚合结果：按下单时间倒序的订单以及失败店铺的告警。"""

    orders: Tuple[Order, ...]
    warnings: Tuple[StoreFailure, ...] = ()


@dataclass(frozen=True)
class DashboardSnapshot:
    """一次完整运行的产出，供报告与导出使用。"""

    result: AggregationResult
    stats: OrderStats
    groups: Tuple[OrderGroup, ...]
    packed: FrozenSet[str]


def merge_results(results: Iterable[StoreFetchResult]) -> AggregationResult:
    """按凭证顺序拼接各店铺订单，再按下单时间稳定倒序排序。"""
    merged: List[Order] = []
    warnings: List[StoreFailure] = []
    for result in results:
        if result.failure is not None:
            warnings.append(result.failure)
        merged.extend(result.orders)
    merged.sort(key=lambda order: order.in_process_at, reverse=True)
    return AggregationResult(orders=tuple(merged), warnings=tuple(warnings))


def _as_result(credential: StoreCredential, outcome: object) -> StoreFetchResult:
    if isinstance(outcome, StoreFetchResult):
        return outcome
    if isinstance(outcome, Exception):
        logger.error("店铺 %s 拉取出现未预期异常", credential.store_id, exc_info=outcome)
        failure = StoreFailure(store_id=credential.store_id, message=str(outcome) or "连接失败")
        return StoreFetchResult(store_id=credential.store_id, failure=failure)
    # 取消等 BaseException 原样抛出
    raise outcome  # type: ignore[misc]


async def aggregate(
    credentials: Sequence[StoreCredential],
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    source: Optional[PageSource] = None,
    now: Optional[datetime] = None,
) -> AggregationResult:
    """并发拉取所有店铺并合并。

    参数:
        credentials: 店铺凭证列表，为空时直接返回空结果，不发起任何请求。
        window_days: 回溯天数。
        source: 分页数据源，缺省时使用默认配置的 Ozon Seller API。
        now: 指定“当前时间”，便于测试。

    返回:
        AggregationResult，单店铺失败只会产生告警，不影响其他店铺。
    """
    if not credentials:
        return AggregationResult(orders=())
    if source is None:
        source = OzonSellerApiPager()

    # 每个店铺在线程中阻塞拉取，所有任务结束后才合并，单个失败不会取消其他任务。
    tasks = [
        asyncio.to_thread(fetch_all_for_store, source, credential, window_days, now=now)
        for credential in credentials
    ]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    results = [
        _as_result(credential, outcome) for credential, outcome in zip(credentials, outcomes)
    ]
    aggregated = merge_results(results)
    logger.info(
        "聚合完成：%s 个店铺，%s 单，%s 个店铺失败",
        len(credentials),
        len(aggregated.orders),
        len(aggregated.warnings),
    )
    return aggregated


class DashboardPipeline:
    """调度多店铺拉取、统计与分组的主流程。"""

    def __init__(self, *, config: AppConfig, source: PageSource) -> None:
        """初始化管道。

        参数:
            config: 全局配置对象，提供默认窗口等参数。
            source: 实际的分页数据源（真实接口或测试替身）。
        """
        self._config = config
        self._source = source

    async def aggregate(
        self,
        credentials: Sequence[StoreCredential],
        *,
        window_days: Optional[int] = None,
    ) -> AggregationResult:
        return await aggregate(
            credentials,
            window_days if window_days is not None else self._config.dashboard.window_days,
            source=self._source,
        )

    def aggregate_sync(
        self,
        credentials: Sequence[StoreCredential],
        *,
        window_days: Optional[int] = None,
    ) -> AggregationResult:
        """供命令行等同步调用方使用的聚合入口。"""
        return asyncio.run(self.aggregate(credentials, window_days=window_days))

    def run(
        self,
        credentials: Sequence[StoreCredential],
        *,
        packed: Iterable[str] = (),
        window_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> DashboardSnapshot:
        """执行一次完整的拉取与汇总。

        参数:
            credentials: 店铺凭证列表。
            packed: 调用方持有的已打包发货单号。
            window_days: 覆盖默认回溯天数。
            today: 统计序列的截止日期。

        返回:
            DashboardSnapshot，包含订单、统计与智能分组。
        """
        result = self.aggregate_sync(credentials, window_days=window_days)
        return DashboardSnapshot(
            result=result,
            stats=compute_stats(result.orders, today=today),
            groups=build_groups(result.orders),
            packed=frozenset(packed),
        )
