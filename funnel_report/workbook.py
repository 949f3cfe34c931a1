from __future__ import annotations

from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

# (sheet title, report key, header color, [(heading, field)])
SHEET_LAYOUT: list[tuple[str, str, str, list[tuple[str, str]]]] = [
    (
        "Monthly",
        "monthly",
        "4CAF50",
        [
            ("月份", "month"),
            ("來客數", "new_customers"),
            ("成交數", "completed_deals"),
            ("成交率 %", "conversion_rate"),
            ("總金額", "total_amount"),
            ("客單價", "average_amount"),
        ],
    ),
    (
        "Specialists",
        "specialists",
        "1565C0",
        [
            ("業務", "specialist"),
            ("訂單數量", "orders"),
            ("潛力客戶數", "potential"),
            ("成交率 %", "conversion_rate"),
            ("當季業績累積", "sales_total"),
        ],
    ),
    (
        "Clinics",
        "clinics",
        "8E24AA",
        [
            ("診所", "clinic"),
            ("轉介數", "total"),
            ("潛力客戶", "potential"),
            ("成交數", "converted"),
            ("成交率 %", "conversion_rate"),
            ("累積金額", "total_amount"),
        ],
    ),
    (
        "Stores",
        "stores",
        "F57C00",
        [
            ("門市", "store"),
            ("轉介數", "total"),
            ("潛力客戶", "potential"),
        ],
    ),
    (
        "Hearing Screening",
        "source_months",
        "00897B",
        [
            ("月份", "month"),
            ("來客數", "total"),
            ("潛力客戶", "potential"),
            ("成交數", "converted"),
            ("成交率 %", "conversion_rate"),
            ("累積金額", "total_amount"),
        ],
    ),
]

RATE_FORMAT = "0.0"
MONEY_FORMAT = "#,##0.##"
MONEY_FIELDS = {"total_amount", "average_amount", "sales_total"}


def _style_sheet(ws, col_widths: list[int], header_color: str) -> None:
    """Bold white header on a colored band, frozen header row, column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list[Any]], min_width: int = 10, max_width: int = 40) -> list[int]:
    if not rows:
        return []
    widths = [min_width] * len(rows[0])
    for row in rows:
        for i, value in enumerate(row):
            # CJK glyphs render roughly two columns wide
            text = str(value)
            length = sum(2 if ord(ch) > 0x2E80 else 1 for ch in text)
            widths[i] = max(widths[i], min(max_width, length + 2))
    return widths


def _write_summary(ws, report: dict[str, Any]) -> None:
    summary = report["summary"]
    titles = report["titles"]
    accounting = report["row_accounting"]
    rows = [
        ["項目", "數值"],
        ["報表", titles["store_analysis"]],
        ["期間", titles["date_range"]],
        ["PTA 閾值", report["parameters"]["pta_threshold"]],
        ["來客數", summary["total_potential"]],
        ["成交數", summary["total_converted"]],
        ["營業額", summary["total_amount"]],
        ["客單價", summary["average_deal_amount"]],
        ["成交率 %", round(summary["overall_conversion_rate"], 1)],
        ["最早", summary["date_span"]["earliest"]],
        ["最晚", summary["date_span"]["latest"]],
        ["分析筆數", accounting["analysed_rows"]],
        ["資料筆數", accounting["data_rows"]],
    ]
    for row in rows:
        ws.append(row)
    _style_sheet(ws, _infer_col_widths(rows), "37474F")


def write_report_workbook(report: dict[str, Any], output_path: Path) -> Path:
    """Write the assembled report payload as one sheet per dimension plus a summary sheet."""
    wb = openpyxl.Workbook()
    summary_ws = wb.active
    summary_ws.title = "Summary"
    _write_summary(summary_ws, report)

    for title, key, color, columns in SHEET_LAYOUT:
        ws = wb.create_sheet(title)
        headings = [heading for heading, _ in columns]
        rows_for_width: list[list[Any]] = [headings]
        ws.append(headings)
        for item in report[key]:
            row_out = [item[name] for _, name in columns]
            ws.append(row_out)
            rows_for_width.append(row_out)
            last = ws.max_row
            for index, (_, name) in enumerate(columns, start=1):
                if name == "conversion_rate":
                    ws.cell(last, index).number_format = RATE_FORMAT
                elif name in MONEY_FIELDS:
                    ws.cell(last, index).number_format = MONEY_FORMAT
        _style_sheet(ws, _infer_col_widths(rows_for_width), color)

    warnings = report.get("warnings") or []
    if warnings:
        ws = wb.create_sheet("Warnings")
        ws.append(["warning"])
        for warning in warnings:
            ws.append([warning])
        _style_sheet(ws, [100], "E53935")
        for cell in ws["A"][1:]:
            cell.alignment = Alignment(wrap_text=True, vertical="top")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path
