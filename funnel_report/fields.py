"""
Header resolution for loosely named spreadsheet exports.

Clinic sheets are maintained by hand, so columns drift ("初次到店日期",
"初次到店", "Date of visit" ...). Each canonical field is matched by
case-sensitive substring containment; the first header that matches wins.
"""

from __future__ import annotations

from typing import Iterable

from funnel_report.shared import (
    FIELD_CANDIDATES,
    LEFT_EAR_MARKER,
    PTA_MARKER,
    RIGHT_EAR_MARKER,
    STORE_MARKERS,
    FieldMap,
    MissingDateColumnError,
)


def find_header(headers: Iterable[str], needles: Iterable[str]) -> str | None:
    needles = tuple(needles)
    for header in headers:
        if any(needle in header for needle in needles):
            return header
    return None


def find_header_with_all(headers: Iterable[str], needles: Iterable[str]) -> str | None:
    needles = tuple(needles)
    for header in headers:
        if all(needle in header for needle in needles):
            return header
    return None


def find_ear_header(headers: Iterable[str], ear_marker: str) -> str | None:
    for header in headers:
        if ear_marker in header and PTA_MARKER in header.upper():
            return header
    return None


def resolve_fields(headers: list[str]) -> FieldMap:
    """Resolve canonical fields for one analysis; raises when no date column exists."""
    labels = [str(header) if header is not None else "" for header in headers]
    resolved = {name: find_header(labels, needles) for name, needles in FIELD_CANDIDATES}
    if resolved["date"] is None:
        raise MissingDateColumnError(labels)

    return FieldMap(
        date=resolved["date"],
        status=resolved["status"],
        amount=resolved["amount"],
        left_ear=find_ear_header(labels, LEFT_EAR_MARKER),
        right_ear=find_ear_header(labels, RIGHT_EAR_MARKER),
        store=find_header_with_all(labels, STORE_MARKERS),
    )
