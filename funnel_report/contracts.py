"""Versioned envelopes for every JSON document funnel-report writes."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

TOOL_NAME = "funnel-report"

CONTRACT_VERSIONS = {
    "funnel_report.report": "1.0.0",
    "funnel_report.rows": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    if name not in CONTRACT_VERSIONS:
        raise KeyError(f"Unknown contract: {name}")
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def wrap_payload(name: str, tool_version: str, body: dict[str, Any]) -> dict[str, Any]:
    """Prefix a payload with its contract, schema version and tool version."""
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": tool_version,
        **body,
    }


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    sheet_name: str | None = None,
    status: str = "ok",
    output_path: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": TOOL_NAME,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "sheet_name": sheet_name,
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
