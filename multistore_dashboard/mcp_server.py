"""多店铺仪表盘 MCP 服务模块，基于 FastMCP 暴露订单聚合与拣货工具。"""

import argparse
import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context, FastMCP

from multistore_dashboard.config import AppConfig
from multistore_dashboard.services import ServiceContext, create_service_context
from multistore_dashboard.skills import Skill, build_order_skills

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=os.getenv("MCP_SERVER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

GLOBAL_SERVICE_CONTEXT: Optional[ServiceContext] = None


class DashboardAppContext:
    """封装 MCP 生命周期中共享的业务依赖。"""

    def __init__(self, service_context: ServiceContext) -> None:
        self.service_context = service_context
        self.skills: Dict[str, Skill] = {
            skill.name: skill for skill in build_order_skills(service_context)
        }


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[DashboardAppContext]:
    """FastMCP 生命周期钩子，创建并共享业务上下文。"""

    service_context = create_service_context(AppConfig.from_env())
    global GLOBAL_SERVICE_CONTEXT
    GLOBAL_SERVICE_CONTEXT = service_context
    yield DashboardAppContext(service_context=service_context)


mcp = FastMCP(
    name="Multi-store Dashboard",
    instructions=(
        "Aggregate Ozon orders across several seller accounts. Fetch orders first, "
        "then compute revenue stats, build single-item pick lists, or export them."
    ),
    lifespan=app_lifespan,
    streamable_http_path="/mcp",
)


def _app_context(ctx: Context) -> DashboardAppContext:
    app_context = getattr(ctx.request_context, "lifespan_context", None)
    if isinstance(app_context, DashboardAppContext):
        return app_context
    if GLOBAL_SERVICE_CONTEXT is not None:
        return DashboardAppContext(GLOBAL_SERVICE_CONTEXT)
    raise RuntimeError("Service context is not available; lifespan may not be initialized.")


async def _invoke(ctx: Context, name: str, **kwargs: Any) -> Dict[str, Any]:
    # 服务层内部会自行驱动事件循环并阻塞等待网络，放到工作线程执行。
    skill = _app_context(ctx).skills[name]
    return await asyncio.to_thread(skill.invoke, **kwargs)


@mcp.resource("multistore-dashboard://config", mime_type="application/json")
def read_configuration() -> Dict[str, Any]:
    """返回当前配置，供客户端参考默认参数。"""

    if GLOBAL_SERVICE_CONTEXT is not None:
        config = GLOBAL_SERVICE_CONTEXT.config
        tools = [skill.to_descriptor() for skill in build_order_skills(GLOBAL_SERVICE_CONTEXT)]
    else:
        config = AppConfig.from_env()
        tools = []
    return {
        "default_window_days": config.dashboard.window_days,
        "base_url": config.dashboard.base_url,
        "database_path": config.storage.db_path,
        "llm_enabled": bool(config.openai_api_key),
        "tools": tools,
    }


@mcp.tool(name="fetch_orders")
async def tool_fetch_orders(
    ctx: Context,
    window_days: Optional[int] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """并发拉取所有店铺订单；失败店铺出现在 warnings 中。

    Args:
        window_days (Optional[int]): 回溯天数，默认 15。
        limit (Optional[int]): 只返回最近的若干单。
    """

    return await _invoke(ctx, "fetch_orders", window_days=window_days, limit=limit)


@mcp.tool(name="compute_order_stats")
async def tool_compute_order_stats(ctx: Context, today: Optional[str] = None) -> Dict[str, Any]:
    """计算分币种营收、客单价与最近 15 天营收序列。"""

    return await _invoke(ctx, "compute_order_stats", today=today)


@mcp.tool(name="build_pick_list")
async def tool_build_pick_list(ctx: Context) -> Dict[str, Any]:
    """返回按货号分组的单商品订单拣货清单。"""

    return await _invoke(ctx, "build_pick_list")


@mcp.tool(name="export_pick_list")
async def tool_export_pick_list(ctx: Context, path: Optional[str] = None) -> Dict[str, Any]:
    """将拣货清单导出为 CSV 文件。"""

    return await _invoke(ctx, "export_pick_list", path=path)


@mcp.tool(name="mark_packed")
async def tool_mark_packed(ctx: Context, posting_numbers: List[str], status: bool = True) -> Dict[str, Any]:
    """标记或撤销发货单的已打包状态。"""

    return await _invoke(ctx, "mark_packed", posting_numbers=posting_numbers, status=status)


@mcp.tool(name="generate_sales_summary")
async def tool_generate_sales_summary(ctx: Context) -> Dict[str, Any]:
    """生成中文销售日报。"""

    return await _invoke(ctx, "generate_sales_summary")


def main(argv: Optional[list[str]] = None) -> None:
    """命令行入口，支持选择传输方式与监听参数。"""

    parser = argparse.ArgumentParser(description="Run the multi-store dashboard MCP server.")
    parser.add_argument(
        "transport",
        nargs="?",
        default="stdio",
        choices=["stdio", "sse", "streamable-http"],
        help="Transport mechanism to expose (default: stdio).",
    )
    parser.add_argument("--host", default=None, help="Optional host binding for HTTP-based transports.")
    parser.add_argument("--port", type=int, default=None, help="Optional port binding for HTTP-based transports.")
    args = parser.parse_args(argv)

    if args.host:
        mcp.settings.host = args.host
    if args.port is not None:
        mcp.settings.port = args.port
    logger.info("Starting MCP server transport=%s host=%s port=%s", args.transport, mcp.settings.host, mcp.settings.port)
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
