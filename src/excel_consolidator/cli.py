"""Command line entry point: merge local workbooks or run the API server."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from excel_consolidator.config import OutputBase, settings
from excel_consolidator.excel_document import SourceFile
from excel_consolidator.models import MergeConfig
from excel_consolidator.services.merger import ExcelMerger
from excel_consolidator.utils.exceptions import ConsolidatorError
from excel_consolidator.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="excel-consolidator",
        description="Merge spreadsheet workbooks into one consolidated sheet.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge local .xlsx files.")
    merge.add_argument("files", nargs="+", type=Path, help="Workbooks, in order.")
    merge.add_argument(
        "-o", "--output", type=Path, required=True, help="Output .xlsx path."
    )
    merge.add_argument("--start-row", type=int, default=2)
    merge.add_argument("--start-column", default="A")
    merge.add_argument("--end-column", default="Z")
    merge.add_argument(
        "--no-total",
        action="store_true",
        help="Drop the TOTAL row and unlabelled subtotal rows.",
    )
    merge.add_argument(
        "--no-signature",
        action="store_true",
        help="Do not append the signature section.",
    )
    merge.add_argument(
        "--output-base",
        choices=[base.value for base in OutputBase],
        default=None,
        help="Write into a new workbook or into a copy of the first input.",
    )
    merge.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def run_merge(args: argparse.Namespace) -> int:
    configure_logging(level="DEBUG" if args.verbose else settings.log_level)

    try:
        config = MergeConfig(
            include_total=not args.no_total,
            start_row=args.start_row,
            start_column=args.start_column,
            end_column=args.end_column,
            include_signature=not args.no_signature,
        )
    except PydanticValidationError as e:
        print(f"Invalid merge configuration: {e}", file=sys.stderr)
        return 2

    missing = [path for path in args.files if not path.is_file()]
    if missing:
        print(f"File not found: {missing[0]}", file=sys.stderr)
        return 2

    sources = [SourceFile.from_path(path) for path in args.files]
    output_base = OutputBase(args.output_base) if args.output_base else None

    try:
        result = ExcelMerger(output_base=output_base).merge(sources, config)
    except ConsolidatorError as e:
        logger.error("Merge failed", error=str(e))
        print(f"Merge failed: {e}", file=sys.stderr)
        return 1

    args.output.write_bytes(result.content)
    print(
        f"Wrote {args.output} ({result.stats.rows_written} rows from "
        f"{result.stats.files_processed} files)"
    )
    return 0


def run_server(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "excel_consolidator.api:app",
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "merge":
        return run_merge(args)
    return run_server(args)


if __name__ == "__main__":
    sys.exit(main())
