"""
JSON configuration for funnel-report runs.

Shape (every key optional):

    {
      "date_range": {"start_year": 2024, "start_month": 1, "end_year": 2024, "end_month": 12},
      "pta_threshold": 40,
      "store_name": "桃園藝文店",
      "unify_referral_rules": false
    }

Command-line flags override file values; missing values fall back to the
current calendar year, threshold 40 and the first known store.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from funnel_report.shared import (
    DEFAULT_PTA_THRESHOLD,
    DEFAULT_STORE,
    PTA_THRESHOLD_CHOICES,
    STORE_OPTIONS,
    DateRange,
)

DEFAULT_CONFIG_NAME = "funnel-report.json"
KNOWN_KEYS = {"date_range", "pta_threshold", "store_name", "unify_referral_rules"}
DATE_RANGE_KEYS = ("start_year", "start_month", "end_year", "end_month")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ReportConfig:
    date_range: DateRange
    pta_threshold: float = DEFAULT_PTA_THRESHOLD
    store_name: str = DEFAULT_STORE
    unify_referral_rules: bool = False
    warnings: tuple[str, ...] = field(default=(), compare=False)


def default_config(today: date | None = None) -> ReportConfig:
    today = today or date.today()
    return ReportConfig(date_range=DateRange.calendar_year(today.year))


def _require_int(payload: dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"date_range.{key} must be an integer, got {value!r}")
    return value


def parse_date_range(payload: Any, fallback: DateRange) -> DateRange:
    if not isinstance(payload, dict):
        raise ConfigError("date_range must be an object.")
    unknown = set(payload) - set(DATE_RANGE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown date_range keys: {sorted(unknown)}")
    values = {key: getattr(fallback, key) for key in DATE_RANGE_KEYS}
    for key in DATE_RANGE_KEYS:
        if key in payload:
            values[key] = _require_int(payload, key)
    try:
        return DateRange(**values)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def threshold_warnings(threshold: float) -> list[str]:
    if threshold in PTA_THRESHOLD_CHOICES:
        return []
    return [
        f"PTA threshold {threshold:g} is outside the usual "
        f"{PTA_THRESHOLD_CHOICES[0]}–{PTA_THRESHOLD_CHOICES[-1]} dBHL steps of 5."
    ]


def store_warnings(store_name: str) -> list[str]:
    if store_name in STORE_OPTIONS:
        return []
    return [f"Store '{store_name}' is not one of the known stores: {', '.join(STORE_OPTIONS)}"]


def config_from_dict(payload: Any, base: ReportConfig | None = None) -> ReportConfig:
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    unknown = set(payload) - KNOWN_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys: {sorted(unknown)}")

    base = base or default_config()
    date_range = base.date_range
    if "date_range" in payload:
        date_range = parse_date_range(payload["date_range"], base.date_range)

    threshold = payload.get("pta_threshold", base.pta_threshold)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ConfigError(f"pta_threshold must be a number, got {threshold!r}")

    store_name = payload.get("store_name", base.store_name)
    if not isinstance(store_name, str) or not store_name.strip():
        raise ConfigError("store_name must be a non-empty string.")

    unify = payload.get("unify_referral_rules", base.unify_referral_rules)
    if not isinstance(unify, bool):
        raise ConfigError("unify_referral_rules must be true or false.")

    return ReportConfig(
        date_range=date_range,
        pta_threshold=threshold,
        store_name=store_name,
        unify_referral_rules=unify,
        warnings=tuple(threshold_warnings(threshold) + store_warnings(store_name)),
    )


def load_config(path: Path, base: ReportConfig | None = None) -> ReportConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    if path.suffix.lower() != ".json":
        raise ConfigError("Config must be a .json file.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise ConfigError(f"Could not read config: {exc}") from exc
    return config_from_dict(payload, base)


def apply_overrides(config: ReportConfig, **overrides: Any) -> ReportConfig:
    """Layer non-None command-line values over a loaded config."""
    payload: dict[str, Any] = {}
    range_values = {
        key: overrides[key] for key in DATE_RANGE_KEYS if overrides.get(key) is not None
    }
    if range_values:
        payload["date_range"] = range_values
    for key in ("pta_threshold", "store_name", "unify_referral_rules"):
        if overrides.get(key) is not None:
            payload[key] = overrides[key]
    return config_from_dict(payload, config)


def starter_config_text(today: date | None = None) -> str:
    config = default_config(today)
    payload = {
        "date_range": {key: getattr(config.date_range, key) for key in DATE_RANGE_KEYS},
        "pta_threshold": config.pta_threshold,
        "store_name": config.store_name,
        "unify_referral_rules": config.unify_referral_rules,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
