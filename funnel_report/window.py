from __future__ import annotations

from datetime import date
from typing import Iterable, TypeVar

from funnel_report.shared import ClassifiedRecord, DateRange, Record

T = TypeVar("T", Record, ClassifiedRecord)


def in_window(value: date, date_range: DateRange) -> bool:
    return date_range.first_day <= value <= date_range.last_day


def record_date(item: Record | ClassifiedRecord) -> date:
    if isinstance(item, ClassifiedRecord):
        return item.record.parsed_date
    return item.parsed_date


def filter_window(items: Iterable[T], date_range: DateRange) -> list[T]:
    """Keep records whose anchor date falls inside the inclusive month window, in input order."""
    return [item for item in items if in_window(record_date(item), date_range)]
