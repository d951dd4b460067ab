"""围绕多店铺订单场景的具体 Skill 实现，对 ``services`` 层做统一封装。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..services import (
    ServiceContext,
    build_pick_list,
    compute_order_stats,
    export_pick_list,
    fetch_orders,
    generate_sales_summary,
    mark_packed,
)
from .base import Skill


@dataclass
class _ContextBoundSkill(Skill):
    """带有 ServiceContext 依赖的技能基类。"""

    context: ServiceContext


@dataclass
class FetchOrdersSkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="fetch_orders",
            description="并发拉取所有已配置店铺的订单并按下单时间倒序合并。",
            context=context,
        )

    def invoke(
        self,
        *,
        window_days: Optional[int] = None,
        limit: Optional[int] = None,
        **_: Any,
    ) -> Dict[str, Any]:
        return fetch_orders(self.context, window_days=window_days, limit=limit)


@dataclass
class ComputeOrderStatsSkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="compute_order_stats",
            description="按币种汇总营收、订单数与客单价，并给出主营币种最近 15 天的营收序列。",
            context=context,
        )

    def invoke(self, *, today: Optional[str] = None, **_: Any) -> Dict[str, Any]:
        return compute_order_stats(self.context, today=today)


@dataclass
class BuildPickListSkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="build_pick_list",
            description="把单商品订单按货号分组，附带待打包/已打包数量。",
            context=context,
        )

    def invoke(self, **_: Any) -> Dict[str, Any]:
        return build_pick_list(self.context)


@dataclass
class ExportPickListSkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="export_pick_list",
            description="将智能分组导出为 Excel 可直接打开的 CSV 拣货清单。",
            context=context,
        )

    def invoke(self, *, path: Optional[str] = None, **_: Any) -> Dict[str, Any]:
        return export_pick_list(self.context, path=path)


@dataclass
class MarkPackedSkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="mark_packed",
            description="标记或撤销发货单的已打包状态。",
            context=context,
        )

    def invoke(self, *, posting_numbers: List[str], status: bool = True, **_: Any) -> Dict[str, Any]:
        return mark_packed(self.context, posting_numbers=posting_numbers, status=status)


@dataclass
class GenerateSalesSummarySkill(_ContextBoundSkill):
    def __init__(self, context: ServiceContext) -> None:
        super().__init__(
            name="generate_sales_summary",
            description="基于最近 30 单生成中文销售日报，模型不可用时返回占位文本。",
            context=context,
        )

    def invoke(self, **_: Any) -> Dict[str, Any]:
        return {"summary": generate_sales_summary(self.context)}


def build_order_skills(context: ServiceContext) -> List[Skill]:
    """按固定顺序构建全部技能。"""
    return [
        FetchOrdersSkill(context),
        ComputeOrderStatsSkill(context),
        BuildPickListSkill(context),
        ExportPickListSkill(context),
        MarkPackedSkill(context),
        GenerateSalesSummarySkill(context),
    ]
