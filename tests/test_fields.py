import unittest

from funnel_report.fields import find_ear_header, find_header, resolve_fields
from funnel_report.shared import MissingDateColumnError


class ResolveFieldsTests(unittest.TestCase):
    def test_typical_clinic_headers(self):
        fields = resolve_fields(
            ["初次到店", "是否成交", "成交金額", "左耳PTA", "右耳PTA", "主聽力師", "門市(自帶)"]
        )
        self.assertEqual(fields.date, "初次到店")
        self.assertEqual(fields.status, "是否成交")
        self.assertEqual(fields.amount, "成交金額")
        self.assertEqual(fields.left_ear, "左耳PTA")
        self.assertEqual(fields.right_ear, "右耳PTA")
        self.assertEqual(fields.store, "門市(自帶)")

    def test_first_header_in_row_order_wins(self):
        fields = resolve_fields(["服務日期", "初次到店", "狀態"])
        self.assertEqual(fields.date, "服務日期")
        self.assertEqual(fields.status, "狀態")

    def test_english_headers_are_recognised(self):
        fields = resolve_fields(["Date of visit", "Status", "Amount"])
        self.assertEqual(fields.date, "Date of visit")
        self.assertEqual(fields.status, "Status")
        self.assertEqual(fields.amount, "Amount")

    def test_matching_is_case_sensitive(self):
        with self.assertRaises(MissingDateColumnError):
            resolve_fields(["date", "status"])

    def test_optional_fields_may_be_absent(self):
        fields = resolve_fields(["初次到店日期", "姓名"])
        self.assertEqual(fields.date, "初次到店日期")
        self.assertIsNone(fields.status)
        self.assertIsNone(fields.amount)
        self.assertIsNone(fields.left_ear)
        self.assertIsNone(fields.right_ear)
        self.assertIsNone(fields.store)

    def test_missing_date_column_reports_headers(self):
        with self.assertRaises(MissingDateColumnError) as ctx:
            resolve_fields(["姓名", "電話"])
        self.assertEqual(ctx.exception.headers, ["姓名", "電話"])
        self.assertIn("初次到店", str(ctx.exception))

    def test_missing_date_column_is_a_value_error(self):
        self.assertTrue(issubclass(MissingDateColumnError, ValueError))


class HeaderHelperTests(unittest.TestCase):
    def test_ear_header_needs_ear_marker_and_pta(self):
        headers = ["左耳", "左耳 pta (dB)", "右耳PTA"]
        self.assertEqual(find_ear_header(headers, "左耳"), "左耳 pta (dB)")
        self.assertEqual(find_ear_header(headers, "右耳"), "右耳PTA")

    def test_store_header_needs_both_markers(self):
        self.assertIsNone(resolve_fields(["初次到店", "門市"]).store)
        self.assertEqual(resolve_fields(["初次到店", "自帶門市"]).store, "自帶門市")

    def test_find_header_returns_none_without_match(self):
        self.assertIsNone(find_header(["a", "b"], ("c",)))


if __name__ == "__main__":
    unittest.main()
