from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from stockdash.application.container import build_container
from stockdash.config import get_app_paths
from stockdash.domain.errors import AppError
from stockdash.logging_config import setup_logging
from stockdash.services.analytics import REPORT_WINDOWS

log = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stockdash", description="Inventory and sales dashboard")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="print dashboard totals as JSON")

    daily = sub.add_parser("daily", help="print per-day sales as JSON")
    daily.add_argument("--days", type=int, choices=REPORT_WINDOWS, default=None)

    export = sub.add_parser("export", help="write the sales report workbook")
    export.add_argument("path")
    export.add_argument("--days", type=int, choices=REPORT_WINDOWS, default=30)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    container = build_container(paths.db_path)
    try:
        if args.command == "stats":
            print(json.dumps(asdict(container.reporting.dashboard()), indent=2))
        elif args.command == "daily":
            rows = container.reporting.daily_sales(days=args.days)
            print(json.dumps([asdict(r) for r in rows], indent=2))
        elif args.command == "export":
            container.reporting.export_sales_report_excel(args.path, days=args.days)
            print(args.path)
    except AppError as e:
        log.exception("command_failed command=%s", args.command)
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        container.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
