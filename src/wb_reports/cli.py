"""
Command-line interface for WB Reports.

Generates reports without the web UI, shows the active configuration and
initializes the database.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from wb_reports.core.models import ReportKind
from wb_reports.utils.config import describe_configuration
from wb_reports.utils.exceptions import WBReportsError
from wb_reports.utils.logger import get_logger, setup_logging


cli_logger = get_logger(__name__)


class WBReportsCLI:
    """Command handlers; each returns a process exit code."""

    async def cmd_generate(self, args) -> int:
        from wb_reports.database.workbook import WorkbookExportSink
        from wb_reports.services.report_service import ReportService

        sink = WorkbookExportSink()

        if args.token_id:
            from wb_reports.database.connection import get_db_context

            with get_db_context() as db:
                result = await ReportService(db).export(
                    sink, args.kind, args.date_from, args.date_to, token_id=args.token_id
                )
        else:
            result = await ReportService().export(
                sink, args.kind, args.date_from, args.date_to, api_key=args.api_key
            )

        output = Path(args.output or result.file_name)
        sink.save(str(output))

        if args.sheets:
            from wb_reports.database.sheets import SheetsExportSink

            SheetsExportSink(sheet_id=args.sheet_id).write_result(result)
            print(f"📤 Exported to Google Sheets worksheet '{result.sheet_title}'")

        if result.is_empty:
            print(f"⚠️ No data for {args.date_from} - {args.date_to}, wrote headers only")
        print(f"✅ {len(result.rows)} rows written to {output}")
        return 0

    async def cmd_config(self, args) -> int:
        if args.config_action == "show":
            print("📋 Current configuration:")
            print(json.dumps(describe_configuration(), indent=2, ensure_ascii=False))
        return 0

    async def cmd_db(self, args) -> int:
        from wb_reports.database.connection import init_db

        if args.db_action == "init":
            init_db()
            print("✅ Database tables created")
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="wb-reports",
        description="WB Reports CLI - Wildberries seller report downloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  wb-reports generate --kind details --api-key KEY --date-from 2025-06-10 --date-to 2025-06-12
  wb-reports generate --kind products --token-id ID --date-from 2025-06-01 --date-to 2025-06-30
  wb-reports config show
  wb-reports db init
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate_parser = subparsers.add_parser("generate", help="Generate a report workbook")
    generate_parser.add_argument(
        "--kind",
        required=True,
        help=f"Report kind: {', '.join(k.value for k in ReportKind)} "
             "or details/storage/acceptance/products/finances"
    )
    credential = generate_parser.add_mutually_exclusive_group(required=True)
    credential.add_argument("--api-key", help="Seller API key")
    credential.add_argument("--token-id", help="Stored token id")
    generate_parser.add_argument("--date-from", required=True, help="Start date (YYYY-MM-DD)")
    generate_parser.add_argument("--date-to", required=True, help="End date (YYYY-MM-DD)")
    generate_parser.add_argument("--output", "-o", help="Output .xlsx path (default: report file name)")
    generate_parser.add_argument("--sheets", action="store_true", help="Also export to Google Sheets")
    generate_parser.add_argument("--sheet-id", help="Google Sheet ID (default: GOOGLE_SHEET_ID)")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument("config_action", choices=["show"], help="Configuration action")

    db_parser = subparsers.add_parser("db", help="Database management")
    db_parser.add_argument("db_action", choices=["init"], help="Database action")

    return parser


async def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and dispatch to a command handler."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    cli = WBReportsCLI()
    handlers = {
        "generate": cli.cmd_generate,
        "config": cli.cmd_config,
        "db": cli.cmd_db,
    }

    try:
        return await handlers[args.command](args)
    except WBReportsError as e:
        cli_logger.error(f"CLI operation failed: {e}")
        print(f"❌ Operation failed: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for console script."""
    try:
        sys.exit(asyncio.run(run(argv)))
    except KeyboardInterrupt:
        print("\n⏹️  Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
