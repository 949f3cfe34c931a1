"""
Five grouping passes over the same filtered, classified records.

Every pass runs in two phases: fold (counters and sums into a mutable Tally)
and derive (rates and averages, producing frozen buckets). Nothing divides
while records are still being folded, and no bucket changes once built.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Hashable, Sequence, TypeVar

from funnel_report.parsers import month_label, parse_date
from funnel_report.shared import (
    CLINIC_KEY,
    SCREENING_MARKER,
    SERVICE_DATE_KEYS,
    SOURCE_KEYS,
    SPECIALIST_KEYS,
    STORE_PLACEHOLDER,
    UNKNOWN_SPECIALIST,
    ClassifiedRecord,
    ClinicBucket,
    MonthlyBucket,
    SourceMonthBucket,
    SpecialistBucket,
    StoreBucket,
)

K = TypeVar("K", bound=Hashable)


def percentage(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100


def ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


@dataclass
class Tally:
    """Fold-phase counters for one bucket key; turned into a frozen bucket afterwards."""

    total: int = 0
    potential: int = 0
    converted: int = 0
    amount: float = 0.0

    def add(self, potential: bool, converted: bool, amount: float) -> None:
        self.total += 1
        if potential:
            self.potential += 1
        if converted:
            self.converted += 1
            self.amount += amount


def fold_full(tallies: dict[K, Tally], key: K, item: ClassifiedRecord) -> None:
    tallies.setdefault(key, Tally()).add(item.is_potential, item.is_converted, item.counted_amount)


def fold_referral(tallies: dict[K, Tally], key: K, item: ClassifiedRecord) -> None:
    tallies.setdefault(key, Tally()).add(
        item.referral_potential, item.referral_converted, item.referral_counted_amount
    )


# ── Monthly trend ─────────────────────────────────────────────────────────────

def aggregate_monthly(records: Sequence[ClassifiedRecord]) -> list[MonthlyBucket]:
    tallies: dict[tuple[int, int], Tally] = {}
    for item in records:
        parsed = item.record.parsed_date
        fold_full(tallies, (parsed.year, parsed.month), item)

    return [
        MonthlyBucket(
            month=month_label(date(year, month, 1)),
            year=year,
            month_number=month,
            new_customers=tally.potential,
            completed_deals=tally.converted,
            total_amount=tally.amount,
            conversion_rate=percentage(tally.converted, tally.potential),
            average_amount=ratio(tally.amount, tally.converted),
        )
        for (year, month), tally in sorted(tallies.items())
    ]


# ── Specialists ───────────────────────────────────────────────────────────────

def specialist_name(item: ClassifiedRecord) -> str:
    return item.record.first_filled(SPECIALIST_KEYS) or UNKNOWN_SPECIALIST


def aggregate_specialists(records: Sequence[ClassifiedRecord]) -> list[SpecialistBucket]:
    tallies: dict[str, Tally] = {}
    for item in records:
        fold_full(tallies, specialist_name(item), item)

    # dicts keep insertion order: first-seen specialist first
    return [
        SpecialistBucket(
            specialist=name,
            potential=tally.potential,
            orders=tally.converted,
            sales_total=tally.amount,
            conversion_rate=percentage(tally.converted, tally.potential),
        )
        for name, tally in tallies.items()
    ]


# ── Referring clinics ────────────────────────────────────────────────────────

def aggregate_clinics(records: Sequence[ClassifiedRecord]) -> list[ClinicBucket]:
    tallies: dict[str, Tally] = {}
    for item in records:
        clinic = item.record.get(CLINIC_KEY).strip()
        if clinic:
            fold_referral(tallies, clinic, item)

    buckets = [
        ClinicBucket(
            clinic=clinic,
            total=tally.total,
            potential=tally.potential,
            converted=tally.converted,
            total_amount=tally.amount,
            conversion_rate=percentage(tally.converted, tally.total),
        )
        for clinic, tally in tallies.items()
    ]
    return sorted(buckets, key=lambda bucket: -bucket.total)


# ── Referring stores ─────────────────────────────────────────────────────────

def aggregate_stores(records: Sequence[ClassifiedRecord], store_header: str | None) -> list[StoreBucket]:
    if store_header is None:
        return []
    tallies: dict[str, Tally] = {}
    for item in records:
        store = item.record.get(store_header).strip()
        if store and store != STORE_PLACEHOLDER:
            fold_referral(tallies, store, item)

    buckets = [StoreBucket(store=store, total=tally.total, potential=tally.potential) for store, tally in tallies.items()]
    return sorted(buckets, key=lambda bucket: -bucket.total)


# ── Hearing-screening campaign source, per month ─────────────────────────────

def is_screening_source(item: ClassifiedRecord) -> bool:
    return SCREENING_MARKER in item.record.first_filled(SOURCE_KEYS)


def service_date_text(item: ClassifiedRecord) -> str:
    return item.record.first_filled(SERVICE_DATE_KEYS)


def aggregate_source_months(records: Sequence[ClassifiedRecord]) -> list[SourceMonthBucket]:
    tallies: dict[tuple[int, int], Tally] = {}
    for item in records:
        if not is_screening_source(item):
            continue
        served = parse_date(service_date_text(item))
        if served is not None:
            fold_full(tallies, (served.year, served.month), item)

    return [
        SourceMonthBucket(
            month=month_label(date(year, month, 1)),
            year=year,
            month_number=month,
            total=tally.total,
            potential=tally.potential,
            converted=tally.converted,
            total_amount=tally.amount,
            conversion_rate=percentage(tally.converted, tally.total),
        )
        for (year, month), tally in sorted(tallies.items())
    ]
