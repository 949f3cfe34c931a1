"""
Report assembly: raw grid in, immutable AnalysisResult out.

    result = analyse_grid(grid, DateRange(2024, 1, 2024, 12), pta_threshold=40)
    result.monthly, result.specialists, result.clinics, result.stores, result.source_months

The only error that escapes is MissingDateColumnError; every row-level
problem is absorbed into the row accounting and the warnings list.
"""

from __future__ import annotations

from typing import Any, Sequence

from funnel_report.aggregation import (
    aggregate_clinics,
    aggregate_monthly,
    aggregate_source_months,
    aggregate_specialists,
    aggregate_stores,
    percentage,
    ratio,
    service_date_text,
)
from funnel_report.classifier import classify_record
from funnel_report.fields import resolve_fields
from funnel_report.parsers import locale_date_label, month_label, parse_date
from funnel_report.shared import (
    CLINIC_KEY,
    DEFAULT_PTA_THRESHOLD,
    DEFAULT_STORE,
    NO_AMOUNT_FIELD,
    NO_STATUS_FIELD,
    SOURCE_KEYS,
    SPECIALIST_KEYS,
    AnalysisResult,
    ClassifiedRecord,
    DateRange,
    FieldMap,
    MissingDateColumnError,
    Record,
    RowAccounting,
    RowDetail,
)
from funnel_report.window import filter_window


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def normalise_headers(header_row: Sequence[Any]) -> list[str]:
    return [cell_text(header) for header in header_row]


def build_record(row_number: int, headers: list[str], row: Sequence[Any], date_index: int) -> tuple[Record | None, str]:
    """
    Materialise one data row. Returns (record, outcome) where outcome is
    "ok", "blank_date" or "unparseable_date".
    """
    date_text = cell_text(row[date_index]).strip() if date_index < len(row) else ""
    if not date_text:
        return None, "blank_date"

    parsed = parse_date(date_text)
    if parsed is None:
        return None, "unparseable_date"

    cells: dict[str, str] = {}
    for index, header in enumerate(headers):
        cells[header] = cell_text(row[index]) if index < len(row) else ""
    return Record(row_number=row_number, cells=cells, date_text=date_text, parsed_date=parsed), "ok"


def row_detail(item: ClassifiedRecord, fields: FieldMap) -> RowDetail:
    record = item.record
    status = record.get(fields.status) if fields.status else ""
    amount = record.get(fields.amount) if fields.amount else ""
    return RowDetail(
        row_number=record.row_number,
        date_text=record.date_text,
        parsed_date=locale_date_label(record.parsed_date),
        month=month_label(record.parsed_date),
        status=status or NO_STATUS_FIELD,
        amount=amount or NO_AMOUNT_FIELD,
        is_potential=item.is_potential,
        is_converted=item.is_converted,
        deal_amount=item.deal_amount,
    )


def report_titles(date_range: DateRange, store_name: str) -> dict[str, str]:
    return {
        "date_range": (
            f"{date_range.start_year}年{date_range.start_month}月~"
            f"{date_range.end_year}年{date_range.end_month}月"
        ),
        "store_analysis": f"{store_name}數據分析",
    }


def column_warnings(headers: list[str], fields: FieldMap) -> list[str]:
    warnings: list[str] = []
    if fields.status is None:
        warnings.append("No status column found; row details show '無狀態欄位'.")
    if fields.amount is None:
        warnings.append("No amount column found; row details show '無金額欄位'.")
    if fields.left_ear is None and fields.right_ear is None:
        warnings.append("No ear PTA columns found; only converted rows count as potential customers.")
    if not any(key in headers for key in SPECIALIST_KEYS):
        warnings.append("No specialist column found; every row is grouped under '未知業務員'.")
    if CLINIC_KEY not in headers:
        warnings.append(f"No '{CLINIC_KEY}' column found; clinic referral analysis is empty.")
    if fields.store is None:
        warnings.append("No store referral column (門市 + 自帶) found; store referral analysis is empty.")
    if not any(key in headers for key in SOURCE_KEYS):
        warnings.append("No customer source column found; hearing-screening analysis is empty.")
    return warnings


def analyse_grid(
    grid: Sequence[Sequence[Any]],
    date_range: DateRange,
    pta_threshold: float = DEFAULT_PTA_THRESHOLD,
    *,
    store_name: str = DEFAULT_STORE,
    unify_referral_rules: bool = False,
) -> AnalysisResult:
    if not grid:
        raise MissingDateColumnError([])

    headers = normalise_headers(grid[0])
    fields = resolve_fields(headers)
    date_index = headers.index(fields.date)

    outcomes = {"blank_date": 0, "unparseable_date": 0}
    records: list[Record] = []
    for row_number, row in enumerate(grid[1:], start=2):
        record, outcome = build_record(row_number, headers, row or [], date_index)
        if record is None:
            outcomes[outcome] += 1
        else:
            records.append(record)

    in_range = filter_window(records, date_range)
    outcomes["outside_window"] = len(records) - len(in_range)

    classified = [
        classify_record(record, fields, pta_threshold, unify_referral_rules=unify_referral_rules)
        for record in in_range
    ]
    total_potential = 0
    total_converted = 0
    total_amount = 0.0
    for item in classified:
        if item.is_potential:
            total_potential += 1
        if item.is_converted:
            total_converted += 1
            total_amount += item.counted_amount

    accounting = RowAccounting(
        data_rows=len(grid) - 1,
        blank_date_rows=outcomes["blank_date"],
        unparseable_date_rows=outcomes["unparseable_date"],
        outside_window_rows=outcomes["outside_window"],
        analysed_rows=len(classified),
    )

    warnings = column_warnings(headers, fields)
    if accounting.blank_date_rows:
        warnings.append(f"{accounting.blank_date_rows} row(s) skipped: empty '{fields.date}' cell.")
    if accounting.unparseable_date_rows:
        warnings.append(f"{accounting.unparseable_date_rows} row(s) skipped: unparseable '{fields.date}' value.")
    if accounting.outside_window_rows:
        warnings.append(f"{accounting.outside_window_rows} row(s) outside the selected date range.")

    # Literal first/last record in row order, not min/max.
    earliest = service_date_text(classified[0]) if classified else ""
    latest = service_date_text(classified[-1]) if classified else ""

    return AnalysisResult(
        date_range=date_range,
        pta_threshold=pta_threshold,
        fields=fields,
        monthly=tuple(aggregate_monthly(classified)),
        specialists=tuple(aggregate_specialists(classified)),
        clinics=tuple(aggregate_clinics(classified)),
        stores=tuple(aggregate_stores(classified, fields.store)),
        source_months=tuple(aggregate_source_months(classified)),
        total_potential=total_potential,
        total_converted=total_converted,
        total_amount=total_amount,
        overall_conversion_rate=percentage(total_converted, total_potential),
        average_deal_amount=ratio(total_amount, total_converted),
        earliest=earliest,
        latest=latest,
        row_accounting=accounting,
        rows=tuple(row_detail(item, fields) for item in classified),
        titles=report_titles(date_range, store_name),
        warnings=tuple(warnings),
    )
