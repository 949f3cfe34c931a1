from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from funnel_report import __version__ as TOOL_VERSION
from funnel_report.config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    ReportConfig,
    apply_overrides,
    default_config,
    load_config,
    starter_config_text,
)
from funnel_report.loader import ALL_FORMATS
from funnel_report.reporter import build_report, build_rows_payload
from funnel_report.workbook import write_report_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_NO_ROWS = 3


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class FunnelReportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("FUNNEL_REPORT_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "funnel-report-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


PINNED_TIMESTAMP = "1970-01-01T00:00:00Z"


def pin_timestamps(value: Any) -> Any:
    """Replace every generated_at so reruns write byte-identical files."""
    if isinstance(value, dict):
        return {
            key: PINNED_TIMESTAMP if key == "generated_at" else pin_timestamps(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [pin_timestamps(item) for item in value]
    return value


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, ConfigError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def check_input(input_path: Path) -> None:
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    suffix = input_path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )


def resolve_config(args: argparse.Namespace) -> ReportConfig:
    base = load_config(Path(args.config)) if args.config else default_config()
    return apply_overrides(
        base,
        start_year=args.start_year,
        start_month=args.start_month,
        end_year=args.end_year,
        end_month=args.end_month,
        pta_threshold=args.threshold,
        store_name=args.store,
        unify_referral_rules=True if args.unify_referral_rules else None,
    )


def add_analysis_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Input file path")
    parser.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    parser.add_argument("--config", help=f"JSON config path (see 'config init', default name {DEFAULT_CONFIG_NAME})")
    parser.add_argument("--start-year", type=int, help="First year of the date range")
    parser.add_argument("--start-month", type=int, help="First month of the date range (1-12)")
    parser.add_argument("--end-year", type=int, help="Last year of the date range")
    parser.add_argument("--end-month", type=int, help="Last month of the date range (1-12)")
    parser.add_argument("--threshold", type=float, help="PTA threshold in dBHL (default 40)")
    parser.add_argument("--store", help="Store name used in the report title")
    parser.add_argument(
        "--unify-referral-rules",
        action="store_true",
        help="Use the full conversion rule for clinic and store referrals too",
    )
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    parser.add_argument("--output", help="Explicit output path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = FunnelReportArgumentParser(
        prog="funnel-report",
        description="Customer funnel analytics for hearing-clinic spreadsheet exports.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Analyse a file and write the funnel report.")
    add_analysis_arguments(report)
    report.add_argument("--format", choices=["text", "json"], default="text", help="Output format when --json is not used")
    report.add_argument("--xlsx", action="store_true", help="Also write report.xlsx with one sheet per dimension")

    rows = subparsers.add_parser("rows", help="List the rows that entered the analysis.")
    add_analysis_arguments(rows)

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def render_verbose(payload: dict[str, Any]) -> str:
    accounting = payload.get("row_accounting", {})
    lines = [
        f"Data rows: {accounting.get('data_rows', 0)}",
        f"Analysed rows: {accounting.get('analysed_rows', 0)}",
        f"Empty date: {accounting.get('blank_date_rows', 0)}",
        f"Unparseable date: {accounting.get('unparseable_date_rows', 0)}",
        f"Outside range: {accounting.get('outside_window_rows', 0)}",
    ]
    lines.extend(f"Warning: {warning}" for warning in payload.get("warnings", []))
    return "\n".join(lines)


def exit_code_for_payload(payload: dict[str, Any]) -> int:
    if payload.get("row_accounting", {}).get("analysed_rows", 0) == 0:
        return EXIT_NO_ROWS
    return EXIT_SUCCESS


def run_report(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input(input_path)
        config = resolve_config(args)
        out_dir = determine_output_dir(args, input_path)
        as_json = args.json or args.format == "json"
        report_path = Path(args.output) if args.output else out_dir / ("report.json" if as_json else "report.txt")

        report = pin_timestamps(build_report(input_path, config, sheet_name=args.sheet_name))
        if as_json:
            write_json(report_path, report)
        else:
            write_text(report_path, report["text_report"])

        xlsx_path = None
        if args.xlsx:
            xlsx_dir = report_path.parent if args.output else out_dir
            xlsx_path = write_report_workbook(report, xlsx_dir / "report.xlsx")

        if args.json:
            print(json_dumps(report))
        else:
            if args.format == "text":
                emit_human(report["text_report"].rstrip(), quiet=args.quiet)
            if args.verbose:
                emit_human(render_verbose(report), quiet=args.quiet)
            emit_human(f"Report written: {report_path}", quiet=args.quiet)
            if xlsx_path:
                emit_human(f"Workbook written: {xlsx_path}", quiet=args.quiet)
        return exit_code_for_payload(report)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def render_rows_text(payload: dict[str, Any]) -> str:
    lines = [f"funnel-report rows — {payload['file']}"]
    for row in payload["rows"]:
        flags = []
        if row["is_potential"]:
            flags.append("potential")
        if row["is_converted"]:
            flags.append("converted")
        lines.append(
            f"row {row['row_number']}: {row['parsed_date']} ({row['month']}) "
            f"status={row['status']} amount={row['amount']} [{', '.join(flags) or '-'}]"
        )
    if not payload["rows"]:
        lines.append("- None")
    return "\n".join(lines)


def run_rows(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        check_input(input_path)
        config = resolve_config(args)
        payload = pin_timestamps(build_rows_payload(input_path, config, sheet_name=args.sheet_name))
        if args.output or args.out_dir:
            output_path = Path(args.output) if args.output else determine_output_dir(args, input_path) / "rows.json"
            write_json(output_path, payload)
            emit_human(f"Rows written: {output_path}", quiet=args.quiet or args.json)
        if args.json:
            print(json_dumps(payload))
        else:
            emit_human(render_rows_text(payload), quiet=args.quiet)
            if args.verbose:
                emit_human(render_verbose(payload), quiet=args.quiet)
        return exit_code_for_payload(payload)
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "report":
            return run_report(args)
        if args.command == "rows":
            return run_rows(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
