from __future__ import annotations

import re
import unittest
from pathlib import Path

from funnel_report import __version__
from funnel_report.contracts import CONTRACT_VERSIONS, build_contract, build_run_summary, wrap_payload
from funnel_report.reporter import build_report, build_rows_payload

ROOT = Path(__file__).resolve().parents[1]
SAMPLE_CSV = ROOT / "sample-data" / "clinic_visits.csv"


class ContractTests(unittest.TestCase):
    def test_unknown_contract_raises(self):
        with self.assertRaises(KeyError):
            build_contract("funnel_report.unknown")

    def test_wrap_payload_prefixes_versions(self):
        payload = wrap_payload("funnel_report.rows", "9.9.9", {"rows": []})
        self.assertEqual(payload["contract"], {"name": "funnel_report.rows", "version": "1.0.0"})
        self.assertEqual(payload["schema_version"], "1.0.0")
        self.assertEqual(payload["tool_version"], "9.9.9")
        self.assertEqual(payload["rows"], [])

    def test_run_summary_fields(self):
        summary = build_run_summary(
            command="report",
            input_path=Path("visits.csv"),
            warnings=["a", "b"],
            metrics={"analysed_rows": 3},
        )
        self.assertEqual(summary["tool"], "funnel-report")
        self.assertEqual(summary["command"], "report")
        self.assertEqual(summary["status"], "ok")
        self.assertEqual(summary["warnings_count"], 2)
        self.assertIsNone(summary["output_file"])
        self.assertIsNone(summary["sheet_name"])
        self.assertRegex(summary["generated_at"], r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")

    def test_report_emits_versioned_contract_and_run_summary(self):
        report = build_report(SAMPLE_CSV)
        self.assertEqual(report["contract"]["name"], "funnel_report.report")
        self.assertEqual(report["schema_version"], CONTRACT_VERSIONS["funnel_report.report"])
        self.assertEqual(report["tool_version"], __version__)
        self.assertEqual(report["run_summary"]["command"], "report")
        self.assertIn("analysed_rows", report["run_summary"]["metrics"])
        self.assertEqual(report["run_summary"]["warnings_count"], len(report["warnings"]))

    def test_rows_payload_emits_versioned_contract(self):
        payload = build_rows_payload(SAMPLE_CSV)
        self.assertEqual(payload["contract"]["name"], "funnel_report.rows")
        self.assertEqual(payload["run_summary"]["command"], "rows")
        self.assertEqual(payload["run_summary"]["metrics"]["rows"], len(payload["rows"]))

    def test_versions_are_semver(self):
        for version in CONTRACT_VERSIONS.values():
            self.assertRegex(version, re.compile(r"^\d+\.\d+\.\d+$"))


if __name__ == "__main__":
    unittest.main()
