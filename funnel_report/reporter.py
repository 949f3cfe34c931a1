#!/usr/bin/env python3
"""
funnel-report reporter.py

Builds the JSON payload and the plain-text report for one spreadsheet export.

Usage:
    python -m funnel_report.reporter <path-to-file> [start_year] [end_year]
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from funnel_report import __version__ as TOOL_VERSION
from funnel_report.config import ReportConfig, default_config
from funnel_report.contracts import build_run_summary, wrap_payload
from funnel_report.loader import load_grid
from funnel_report.report import analyse_grid
from funnel_report.shared import AnalysisResult, DateRange


# ── Number formatting ────────────────────────────────────────────────────────

def format_money(value: float) -> str:
    """Thousands separators, at most three decimals, no trailing zeros."""
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_average(value: float, deals: int) -> str:
    if deals <= 0:
        return "NT$ 0"
    return f"NT$ {value:,.1f}"


def format_rate(rate: float) -> str:
    return f"{rate:.1f}%"


def format_specialist_rate(rate: float, potential: int) -> str:
    # The sheet this report replaces showed Excel's divide-by-zero marker.
    if potential <= 0:
        return "#DIV/0!"
    return format_rate(rate)


# ── Payloads ─────────────────────────────────────────────────────────────────

def result_metrics(result: AnalysisResult) -> dict[str, Any]:
    accounting = result.row_accounting
    return {
        "data_rows": accounting.data_rows,
        "analysed_rows": accounting.analysed_rows,
        "total_potential": result.total_potential,
        "total_converted": result.total_converted,
        "total_amount": result.total_amount,
        "overall_conversion_rate": round(result.overall_conversion_rate, 4),
        "months": len(result.monthly),
        "specialists": len(result.specialists),
        "clinics": len(result.clinics),
        "stores": len(result.stores),
    }


def analyse_file(
    file_path: Path,
    config: ReportConfig,
    sheet_name: str | None = None,
) -> tuple[dict[str, Any], AnalysisResult]:
    loaded = load_grid(file_path, sheet_name=sheet_name)
    result = analyse_grid(
        loaded["grid"],
        config.date_range,
        config.pta_threshold,
        store_name=config.store_name,
        unify_referral_rules=config.unify_referral_rules,
    )
    return loaded, result


def build_report(
    file_path: Path,
    config: ReportConfig | None = None,
    sheet_name: str | None = None,
) -> dict[str, Any]:
    config = config or default_config()
    loaded, result = analyse_file(file_path, config, sheet_name)
    warnings = list(config.warnings) + list(loaded["warnings"]) + list(result.warnings)

    report = wrap_payload(
        "funnel_report.report",
        TOOL_VERSION,
        {
            "file_overview": {
                "file": file_path.name,
                "format": loaded["detected_format"],
                "encoding": loaded["detected_encoding"],
                "sheet_name": loaded["sheet_name"],
                "rows": loaded["original_rows"],
                "columns": loaded["original_columns"],
            },
            **result.to_dict(),
        },
    )
    report["warnings"] = warnings
    report["run_summary"] = build_run_summary(
        command="report",
        input_path=file_path,
        sheet_name=loaded["sheet_name"],
        metrics=result_metrics(result),
        warnings=warnings,
    )
    report["text_report"] = render_text_report(report)
    return report


def build_rows_payload(
    file_path: Path,
    config: ReportConfig | None = None,
    sheet_name: str | None = None,
) -> dict[str, Any]:
    config = config or default_config()
    loaded, result = analyse_file(file_path, config, sheet_name)
    warnings = list(config.warnings) + list(loaded["warnings"]) + list(result.warnings)
    payload = wrap_payload(
        "funnel_report.rows",
        TOOL_VERSION,
        {
            "file": file_path.name,
            "fields": asdict(result.fields),
            "row_accounting": asdict(result.row_accounting),
            "rows": [asdict(row) for row in result.rows],
            "warnings": warnings,
        },
    )
    payload["run_summary"] = build_run_summary(
        command="rows",
        input_path=file_path,
        sheet_name=loaded["sheet_name"],
        metrics={"rows": len(result.rows)},
        warnings=warnings,
    )
    return payload


# ── Text rendering ───────────────────────────────────────────────────────────

def render_table(headings: list[str], rows: list[list[str]]) -> list[str]:
    if not rows:
        return ["- None"]
    lines = [" | ".join(headings)]
    lines.extend(" | ".join(row) for row in rows)
    return lines


def render_text_report(report: dict[str, Any]) -> str:
    overview = report["file_overview"]
    titles = report["titles"]
    summary = report["summary"]
    accounting = report["row_accounting"]

    lines = [
        f"{titles['store_analysis']} — {titles['date_range']}",
        "",
        "SECTION 1 — FILE OVERVIEW",
        f"📄 File: {overview['file']}",
        f"📊 Size: {overview['rows']} rows × {overview['columns']} columns",
        f"🗓  Date column: {report['fields']['date']}",
        f"🧾 Analysed rows: {accounting['analysed_rows']} of {accounting['data_rows']}",
        f"🧯 Skipped — empty date: {accounting['blank_date_rows']}, unparseable date: {accounting['unparseable_date_rows']}, outside range: {accounting['outside_window_rows']}",
        f"🎚  PTA threshold: {report['parameters']['pta_threshold']} dBHL",
        "",
        "SECTION 2 — SUMMARY",
        f"來客數 (potential customers): {summary['total_potential']}",
        f"成交數 (converted): {summary['total_converted']}",
        f"營業額 (revenue): NT$ {format_money(summary['total_amount'])}",
        f"客單價 (average deal): {format_average(summary['average_deal_amount'], summary['total_converted'])}",
        f"成交率 (conversion): {format_rate(summary['overall_conversion_rate'])}",
        f"資料期間 (span): {summary['date_span']['earliest'] or '-'} ~ {summary['date_span']['latest'] or '-'}",
        "",
        "SECTION 3 — MONTHLY TREND",
    ]
    lines.extend(
        render_table(
            ["月份", "來客數", "成交數", "成交率", "總金額", "客單價"],
            [
                [
                    item["month"],
                    str(item["new_customers"]),
                    str(item["completed_deals"]),
                    format_rate(item["conversion_rate"]),
                    f"NT$ {format_money(item['total_amount'])}",
                    f"NT$ {format_money(item['average_amount'])}",
                ]
                for item in report["monthly"]
            ],
        )
    )

    lines.extend(["", "SECTION 4 — SPECIALISTS"])
    lines.extend(
        render_table(
            ["業務", "訂單數量", "潛力客戶", "成交率", "期間業績累積"],
            [
                [
                    item["specialist"],
                    str(item["orders"]),
                    str(item["potential"]),
                    format_specialist_rate(item["conversion_rate"], item["potential"]),
                    format_money(item["sales_total"]),
                ]
                for item in report["specialists"]
            ],
        )
    )

    lines.extend(["", "SECTION 5 — CLINIC REFERRALS"])
    lines.extend(
        render_table(
            ["診所", "轉介數", "潛力客戶", "成交數", "成交率", "累積金額"],
            [
                [
                    item["clinic"],
                    str(item["total"]),
                    str(item["potential"]),
                    str(item["converted"]),
                    format_rate(item["conversion_rate"]),
                    format_money(item["total_amount"]),
                ]
                for item in report["clinics"]
            ],
        )
    )

    lines.extend(["", "SECTION 6 — STORE REFERRALS"])
    lines.extend(
        render_table(
            ["門市", "轉介數", "潛力客戶"],
            [[item["store"], str(item["total"]), str(item["potential"])] for item in report["stores"]],
        )
    )

    lines.extend(["", "SECTION 7 — HEARING SCREENING CAMPAIGNS"])
    lines.extend(
        render_table(
            ["月份", "來客數", "潛力客戶", "成交數", "成交率", "累積金額"],
            [
                [
                    item["month"],
                    str(item["total"]),
                    str(item["potential"]),
                    str(item["converted"]),
                    format_rate(item["conversion_rate"]),
                    format_money(item["total_amount"]),
                ]
                for item in report["source_months"]
            ],
        )
    )

    lines.extend(["", "SECTION 8 — WARNINGS"])
    if report.get("warnings"):
        lines.extend(f"• {warning}" for warning in report["warnings"])
    else:
        lines.append("• None")

    return "\n".join(lines).strip() + "\n"


def main() -> int:
    if len(sys.argv) < 2:
        print(json.dumps({"error": "Usage: reporter.py <file> [start_year] [end_year]"}))
        return 1

    input_path = Path(sys.argv[1])
    if not input_path.exists():
        print(json.dumps({"error": f"File not found: {input_path}"}))
        return 1

    try:
        config = default_config()
        if len(sys.argv) >= 3:
            start_year = int(sys.argv[2])
            end_year = int(sys.argv[3]) if len(sys.argv) >= 4 else start_year
            config = ReportConfig(date_range=DateRange(start_year, 1, end_year, 12))
        report = build_report(input_path, config)
    except Exception as exc:
        print(json.dumps({"error": str(exc)}, ensure_ascii=False))
        return 1

    print(report["text_report"], end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
