"""订单服务层：组合凭证存储、多店铺聚合、统计分组、导出与 AI 日报，供 CLI、技能与 MCP 复用。"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .config import AppConfig, StoreCredential, credentials_from_env
from .data_sources.base import LabelSource, Order, PageSource
from .data_sources.ozon_seller_api import OzonSellerApiPager
from .metrics.calculations import compute_stats
from .metrics.grouping import build_groups, toggle_packed
from .pipeline.pipeline import AggregationResult, DashboardPipeline
from .reporting.formatter import (
    groups_to_dict,
    orders_to_payload,
    pick_list_filename,
    stats_to_dict,
    to_delimited_text,
)
from .storage.repository import SQLiteStateRepository

logger = logging.getLogger(__name__)

SUMMARY_ORDER_LIMIT = 30
NO_LLM_PLACEHOLDER = (
    "API Key not configured. Unable to perform AI analysis. "
    "Please set the OPENAI_API_KEY environment variable."
)
EMPTY_REPLY_PLACEHOLDER = "无法生成分析结果。"
LLM_FAILURE_PLACEHOLDER = "AI分析服务暂时不可用，请稍后再试。"
SUMMARY_PROMPT = (
    "作为一位专业的电商数据分析师，请根据以下Ozon订单数据（最近的订单）生成一份简短的中文销售日报。"
    "请包含以下内容：1. 销售总体趋势。2. 最畅销的产品是什么？3. 主要的销售区域分布。"
    "4. 给卖家的简短建议。请保持语气专业且鼓舞人心。"
)


@dataclass
class ServiceContext:
    config: AppConfig
    source: PageSource
    labels: LabelSource
    repository: SQLiteStateRepository
    llm: Optional[ChatOpenAI] = None
    # 最近一次聚合的结果，新的聚合完成后整体替换。
    latest: Optional[AggregationResult] = field(default=None)


@dataclass(frozen=True)
class LabelBatch:
    store_id: str
    posting_numbers: List[str]
    content: bytes
    filename: str


def create_service_context(
    config: AppConfig,
    *,
    source: Optional[PageSource] = None,
    labels: Optional[LabelSource] = None,
    repository: Optional[SQLiteStateRepository] = None,
    llm: Optional[ChatOpenAI] = None,
) -> ServiceContext:
    pager = None
    if source is None or labels is None:
        pager = OzonSellerApiPager(config.dashboard)
    repository = repository or SQLiteStateRepository(config.storage.db_path)
    repository.initialize()
    if llm is None and config.openai_api_key:
        llm = ChatOpenAI(
            api_key=config.openai_api_key,
            model=config.openai_model,
            temperature=config.openai_temperature,
        )
    return ServiceContext(
        config=config,
        source=source or pager,
        labels=labels or pager,
        repository=repository,
        llm=llm,
    )


def load_credentials(context: ServiceContext) -> List[StoreCredential]:
    """读取已保存的店铺凭证，本地没有时使用环境变量中的单店铺凭证。"""
    return context.repository.load_credentials() or credentials_from_env()


def refresh_orders(context: ServiceContext, *, window_days: Optional[int] = None) -> AggregationResult:
    pipeline = DashboardPipeline(config=context.config, source=context.source)
    context.latest = pipeline.aggregate_sync(load_credentials(context), window_days=window_days)
    return context.latest


def _current_orders(context: ServiceContext) -> Sequence[Order]:
    if context.latest is None:
        refresh_orders(context)
    return context.latest.orders


def fetch_orders(
    context: ServiceContext,
    *,
    window_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    result = refresh_orders(context, window_days=window_days)
    orders = result.orders[:limit] if limit else result.orders
    return {
        "total": len(result.orders),
        "orders": orders_to_payload(orders),
        "warnings": [str(warning) for warning in result.warnings],
    }


def compute_order_stats(context: ServiceContext, *, today: Optional[str] = None) -> Dict[str, Any]:
    stats = compute_stats(
        _current_orders(context),
        today=date.fromisoformat(today) if today else None,
    )
    return {"stats": stats_to_dict(stats)}


def build_pick_list(context: ServiceContext) -> Dict[str, Any]:
    groups = build_groups(_current_orders(context))
    packed = context.repository.load_packed()
    return {"groups": groups_to_dict(groups, packed)}


def export_pick_list(context: ServiceContext, *, path: Optional[str] = None) -> Dict[str, Any]:
    groups = build_groups(_current_orders(context))
    if not groups:
        return {"message": "没有可导出的单商品订单分组。"}
    packed = context.repository.load_packed()
    output_path = Path(path or pick_list_filename(datetime.now(timezone.utc).date()))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    # BOM 已包含在文本中，这里按 UTF-8 原样写入。
    output_path.write_text(to_delimited_text(groups, packed), encoding="utf-8", newline="")
    return {"message": f"拣货清单已导出到 {output_path}", "path": str(output_path), "rows": len(groups)}


def mark_packed(context: ServiceContext, *, posting_numbers: Iterable[str], status: bool = True) -> Dict[str, Any]:
    updated = toggle_packed(context.repository.load_packed(), posting_numbers, status)
    context.repository.save_packed(updated)
    return {"packed": len(updated)}


def summarize_orders_for_prompt(orders: Sequence[Order]) -> List[Dict[str, Any]]:
    """取最近的若干订单，压缩为 LLM 提示词所需的字段。"""
    return [
        {
            "date": order.in_process_at.date().isoformat(),
            "products": [
                {"name": item.name, "price": item.price, "currency": item.currency_code}
                for item in order.products
            ],
            "status": order.status,
            "region": order.analytics_data.region if order.analytics_data and order.analytics_data.region else "Unknown",
        }
        for order in orders[:SUMMARY_ORDER_LIMIT]
    ]


def generate_sales_summary(context: ServiceContext, orders: Optional[Sequence[Order]] = None) -> str:
    """生成中文销售日报；未配置模型或调用失败时返回占位文本，不抛出异常。"""
    if context.llm is None:
        return NO_LLM_PLACEHOLDER
    try:
        recent = orders if orders is not None else _current_orders(context)
        summary_data = summarize_orders_for_prompt(recent)
        response = context.llm.invoke(
            [
                SystemMessage(content=SUMMARY_PROMPT),
                HumanMessage(content=f"数据摘要:\n{json.dumps(summary_data, ensure_ascii=False)}"),
            ]
        )
    except Exception:
        logger.exception("AI Analysis Error")
        return LLM_FAILURE_PLACEHOLDER
    content = response.content if isinstance(response.content, str) else ""
    return content or EMPTY_REPLY_PLACEHOLDER


def group_postings_by_store(
    orders: Sequence[Order],
    posting_numbers: Iterable[str],
    credentials: Sequence[StoreCredential],
) -> Dict[str, List[str]]:
    """按来源店铺拆分发货单号；找不到来源的发货单归入第一个店铺。"""
    by_number = {order.posting_number: order for order in orders}
    batches: Dict[str, List[str]] = {}
    for number in posting_numbers:
        order = by_number.get(number)
        if order is not None and order.source_store_id:
            store_id = order.source_store_id
        elif credentials:
            store_id = credentials[0].client_id
        else:
            continue
        batches.setdefault(store_id, []).append(number)
    return batches


def download_labels(
    context: ServiceContext,
    posting_numbers: Sequence[str],
    *,
    orders: Optional[Sequence[Order]] = None,
) -> List[LabelBatch]:
    """
    按店铺分批下载面单。任意一批失败都会直接抛出，调用方不会拿到部分结果。
    """
    credentials = load_credentials(context)
    if not credentials or not posting_numbers:
        return []
    known_orders = orders if orders is not None else (context.latest.orders if context.latest else ())
    by_id = {credential.client_id: credential for credential in credentials}
    batches: List[LabelBatch] = []
    for store_id, numbers in group_postings_by_store(known_orders, posting_numbers, credentials).items():
        credential = by_id.get(store_id, credentials[0])
        logger.info("下载店铺 %s 的 %s 张面单", store_id, len(numbers))
        content = context.labels.fetch_labels(credential, tuple(numbers))
        batches.append(
            LabelBatch(
                store_id=store_id,
                posting_numbers=numbers,
                content=content,
                filename=f"ozon_labels_{store_id}_{int(time.time() * 1000)}.pdf",
            )
        )
    return batches
