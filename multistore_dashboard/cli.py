"""多店铺仪表盘的命令行入口，串联凭证管理、订单聚合、拣货清单与面单下载。"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .config import AppConfig, parse_credentials_text
from .exceptions import DashboardError
from .metrics.calculations import compute_stats
from .metrics.grouping import build_groups
from .reporting.formatter import format_text_report, groups_to_dict, stats_to_dict
from .services import (
    ServiceContext,
    create_service_context,
    download_labels,
    export_pick_list,
    generate_sales_summary,
    load_credentials,
    mark_packed,
    refresh_orders,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    功能说明:
        构建并解析命令行参数，返回解析后的命名空间。
    返回:
        argparse.Namespace: 包含用户指定的子命令与选项。
    """
    parser = argparse.ArgumentParser(description="Ozon multi-store order dashboard")
    parser.add_argument("--db-path", type=Path, help="Override local state database path.")
    parser.add_argument("--window-days", type=int, help="Rolling window length in days (default 15).")
    sub = parser.add_subparsers(dest="command", required=True)

    stores = sub.add_parser("stores", help="Manage store credentials.")
    stores_sub = stores.add_subparsers(dest="action", required=True)
    stores_import = stores_sub.add_parser("import", help="Import 'client_id api_key' lines (file or stdin).")
    stores_import.add_argument("file", nargs="?", type=Path, help="Text file; reads stdin when omitted.")
    stores_sub.add_parser("list", help="List configured store ids.")
    stores_sub.add_parser("clear", help="Remove all saved credentials.")

    report = sub.add_parser("report", help="Aggregate orders and print stats and pick list.")
    report.add_argument("--output-json", type=Path, help="Path to save the JSON payload.")

    export = sub.add_parser("export", help="Export the smart pick list as CSV.")
    export.add_argument("--output", type=Path, help="Target CSV path.")

    for name, help_text in (("pack", "Mark postings as packed."), ("unpack", "Undo packed marks.")):
        toggle = sub.add_parser(name, help=help_text)
        toggle.add_argument("posting_numbers", nargs="+")

    labels = sub.add_parser("labels", help="Download package labels, one PDF per store.")
    labels.add_argument("posting_numbers", nargs="+")
    labels.add_argument("--output-dir", type=Path, default=Path("."))

    sub.add_parser("summary", help="Generate an AI sales summary of recent orders.")
    return parser.parse_args(argv)


def build_context(args: argparse.Namespace) -> ServiceContext:
    config = AppConfig.from_env()
    if args.db_path:
        config.storage.db_path = str(args.db_path)
    if args.window_days is not None:
        config.dashboard.window_days = args.window_days
    return create_service_context(config)


def _print_warnings(context: ServiceContext) -> None:
    for warning in context.latest.warnings if context.latest else ():
        print(f"! {warning}", file=sys.stderr)


def run_stores(context: ServiceContext, args: argparse.Namespace) -> int:
    repository = context.repository
    if args.action == "import":
        text = args.file.read_text(encoding="utf-8") if args.file else sys.stdin.read()
        credentials = parse_credentials_text(text)
        if not credentials and text.strip():
            print("未识别到有效格式，请使用: ClientID API_Key", file=sys.stderr)
            return 1
        repository.save_credentials(credentials)
        print(f"已识别 {len(credentials)} 个店铺")
    elif args.action == "list":
        for credential in load_credentials(context):
            print(credential.client_id)
    else:
        repository.clear_credentials()
        print("已清除全部店铺凭证")
    return 0


def run_report(context: ServiceContext, args: argparse.Namespace) -> int:
    credentials = load_credentials(context)
    if not credentials:
        print("尚未配置店铺，请先执行 stores import。", file=sys.stderr)
        return 1
    result = refresh_orders(context)
    stats = compute_stats(result.orders)
    groups = build_groups(result.orders)
    packed = context.repository.load_packed()
    print(f"已聚合 {len(credentials)} 个店铺数据")
    print(format_text_report(stats, groups, packed, result.warnings))

    if args.output_json:
        payload = {
            "stats": stats_to_dict(stats),
            "groups": groups_to_dict(groups, packed),
            "warnings": [str(warning) for warning in result.warnings],
        }
        args.output_json.parent.mkdir(parents=True, exist_ok=True)
        args.output_json.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"JSON report written to: {args.output_json}")
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    """
    功能说明:
        命令行主入口：读取参数，分发到对应子命令。
    返回:
        int: 进程退出码。
    """
    logging.basicConfig(
        level=os.getenv("DASHBOARD_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args(argv)
    context = build_context(args)

    try:
        if args.command == "stores":
            return run_stores(context, args)
        if args.command == "report":
            return run_report(context, args)
        if args.command == "export":
            refresh_orders(context)
            _print_warnings(context)
            print(export_pick_list(context, path=str(args.output) if args.output else None)["message"])
            return 0
        if args.command in ("pack", "unpack"):
            result = mark_packed(context, posting_numbers=args.posting_numbers, status=args.command == "pack")
            print(f"已打包订单数: {result['packed']}")
            return 0
        if args.command == "labels":
            refresh_orders(context)
            args.output_dir.mkdir(parents=True, exist_ok=True)
            for batch in download_labels(context, args.posting_numbers):
                target = args.output_dir / batch.filename
                target.write_bytes(batch.content)
                print(f"{batch.store_id}: {len(batch.posting_numbers)} labels -> {target}")
            return 0
        refresh_orders(context)
        _print_warnings(context)
        print(generate_sales_summary(context))
        return 0
    except DashboardError as exc:
        logger.error("命令执行失败: %s", exc)
        print(f"下载失败，请检查网络或API配置: {exc}" if args.command == "labels" else str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(run_cli())
