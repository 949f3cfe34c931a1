from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

import pandas as pd

# Order matters: the first pattern that matches anywhere in the text is used,
# even when its digits do not form a real calendar date.
DATE_PATTERNS = [
    (re.compile(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})"), ("year", "month", "day")),
    (re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})"), ("month", "day", "year")),
    (re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日?"), ("year", "month", "day")),
]

# Text the general parser would resolve against the clock, or blank-ish markers.
SENTINEL_DATES = {"na", "n/a", "none", "null", "nil", "nan", "nat", "tbd", "-", "now", "today", "tomorrow", "yesterday"}
YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")

NON_NUMERIC_RE = re.compile(r"[^0-9.]")
LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def _structural_date(text: str) -> tuple[bool, date | None]:
    for pattern, order in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        parts = dict(zip(order, (int(group) for group in match.groups())))
        try:
            return True, date(parts["year"], parts["month"], parts["day"])
        except ValueError:
            return True, None
    return False, None


def _fallback_date(text: str) -> date | None:
    """
    General parser for free-form text such as "March 5, 2024".

    Only accepted when the text spells out a four-digit year and the parsed
    year is that year; two-digit years and bare month names are rejected.
    """
    if text.lower() in SENTINEL_DATES:
        return None
    years = {int(year) for year in YEAR_RE.findall(text)}
    if not years:
        return None
    parsed = pd.to_datetime(text, errors="coerce", dayfirst=False)
    if pd.isna(parsed):
        return None
    value = parsed.to_pydatetime()
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    if value.year not in years:
        return None
    return value.date()


def parse_date(value: Any) -> date | None:
    """Parse spreadsheet date text; None means the row has no usable date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None

    matched, parsed = _structural_date(text)
    if matched:
        return parsed
    return _fallback_date(text)


def parse_amount(value: Any) -> float | None:
    """
    Parse currency-ish text such as "NT$152,000.00" into a float.

    Every character other than digits and "." is dropped, then the longest
    leading decimal number is read. Returns None when nothing numeric is left.
    """
    if value is None:
        return None
    cleaned = NON_NUMERIC_RE.sub("", str(value))
    match = LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def month_label(value: date) -> str:
    return f"{value.year}年{value.month}月"


def locale_date_label(value: date) -> str:
    return f"{value.year}/{value.month}/{value.day}"
