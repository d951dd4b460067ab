"""Skill 抽象与具体技能实现的统一入口。

取数、统计、分组、导出、打包标记、销售日报等能力统一抽象为 Skill，
由 MCP 服务注册为工具。
"""

from .base import Skill
from .orders import (
    BuildPickListSkill,
    ComputeOrderStatsSkill,
    ExportPickListSkill,
    FetchOrdersSkill,
    GenerateSalesSummarySkill,
    MarkPackedSkill,
    build_order_skills,
)

__all__ = [
    "Skill",
    "FetchOrdersSkill",
    "ComputeOrderStatsSkill",
    "BuildPickListSkill",
    "ExportPickListSkill",
    "MarkPackedSkill",
    "GenerateSalesSummarySkill",
    "build_order_skills",
]
