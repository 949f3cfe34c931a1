from __future__ import annotations

from funnel_report.parsers import parse_amount
from funnel_report.shared import (
    AMOUNT_KEYS,
    FULL_CONVERSION_RULE,
    REFERRAL_CONVERSION_RULE,
    ClassifiedRecord,
    FieldMap,
    Record,
)

ConversionRule = tuple[tuple[str, tuple[str, ...]], ...]


def matches_rule(record: Record, rule: ConversionRule) -> bool:
    # Literal comparison; absent keys simply do not match.
    return any(record.get(key) in accepted for key, accepted in rule)


def ear_value(record: Record, header: str | None) -> float | None:
    if header is None:
        return None
    return parse_amount(record.get(header))


def exceeds(value: float | None, threshold: float) -> bool:
    return value is not None and value > threshold


def classify_record(
    record: Record,
    fields: FieldMap,
    pta_threshold: float,
    *,
    unify_referral_rules: bool = False,
) -> ClassifiedRecord:
    left = ear_value(record, fields.left_ear)
    right = ear_value(record, fields.right_ear)
    above_threshold = exceeds(left, pta_threshold) or exceeds(right, pta_threshold)

    is_converted = matches_rule(record, FULL_CONVERSION_RULE)
    if unify_referral_rules:
        referral_converted = is_converted
    else:
        referral_converted = matches_rule(record, REFERRAL_CONVERSION_RULE)

    return ClassifiedRecord(
        record=record,
        is_potential=above_threshold or is_converted,
        is_converted=is_converted,
        referral_potential=above_threshold or referral_converted,
        referral_converted=referral_converted,
        deal_amount=parse_amount(record.first_filled(AMOUNT_KEYS)),
    )
