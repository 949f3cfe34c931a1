import unittest
from datetime import date

from funnel_report.aggregation import (
    aggregate_clinics,
    aggregate_monthly,
    aggregate_source_months,
    aggregate_specialists,
    aggregate_stores,
    percentage,
    ratio,
)
from funnel_report.classifier import classify_record
from funnel_report.parsers import parse_date
from funnel_report.shared import FieldMap, Record

FIELDS = FieldMap(
    date="初次到店",
    status="是否成交",
    amount="成交金額",
    left_ear="左耳PTA",
    right_ear="右耳PTA",
    store="門市(自帶)",
)


def classified(row_number: int, **cells: str):
    date_text = cells.setdefault("初次到店", "2024/1/10")
    record = Record(row_number=row_number, cells=dict(cells), date_text=date_text, parsed_date=parse_date(date_text))
    return classify_record(record, FIELDS, 40)


class RateHelperTests(unittest.TestCase):
    def test_zero_denominators_give_zero(self):
        self.assertEqual(percentage(3, 0), 0.0)
        self.assertEqual(ratio(100.0, 0), 0.0)

    def test_percentage(self):
        self.assertAlmostEqual(percentage(1, 3), 33.3333, places=3)


class MonthlyTests(unittest.TestCase):
    def test_buckets_are_sorted_chronologically_and_derived_after_folding(self):
        items = [
            classified(2, 初次到店="2024/3/1", 是否成交="是", 成交金額="100"),
            classified(3, 初次到店="2024/1/5", 左耳PTA="55"),
            classified(4, 初次到店="2024/3/20", 右耳PTA="60"),
            classified(5, 初次到店="2023/12/31", 是否成交="是", 成交金額="300"),
        ]
        monthly = aggregate_monthly(items)
        self.assertEqual([bucket.month for bucket in monthly], ["2023年12月", "2024年1月", "2024年3月"])

        march = monthly[2]
        self.assertEqual(march.new_customers, 2)
        self.assertEqual(march.completed_deals, 1)
        self.assertEqual(march.total_amount, 100.0)
        self.assertEqual(march.conversion_rate, 50.0)
        self.assertEqual(march.average_amount, 100.0)

        january = monthly[1]
        self.assertEqual(january.completed_deals, 0)
        self.assertEqual(january.conversion_rate, 0.0)
        self.assertEqual(january.average_amount, 0.0)

    def test_month_with_only_uninteresting_rows_still_appears(self):
        monthly = aggregate_monthly([classified(2, 初次到店="2024/5/1", 左耳PTA="10")])
        self.assertEqual(len(monthly), 1)
        self.assertEqual(monthly[0].new_customers, 0)
        self.assertEqual(monthly[0].conversion_rate, 0.0)

    def test_minus_sign_is_dropped_from_amounts(self):
        monthly = aggregate_monthly([classified(2, 是否成交="是", 成交金額="-500")])
        self.assertEqual(monthly[0].total_amount, 500.0)

    def test_zero_amount_deal_counts_but_adds_nothing(self):
        monthly = aggregate_monthly([classified(2, 是否成交="是", 成交金額="0")])
        self.assertEqual(monthly[0].completed_deals, 1)
        self.assertEqual(monthly[0].total_amount, 0.0)
        self.assertEqual(monthly[0].average_amount, 0.0)


class SpecialistTests(unittest.TestCase):
    def test_first_seen_order_and_unknown_fallback(self):
        items = [
            classified(2, 主聽力師="李美玲", 是否成交="是", 成交金額="2000"),
            classified(3, 左耳PTA="50"),
            classified(4, 主聽力師="", 聽力師="王小明", 左耳PTA="70"),
            classified(5, 主聽力師="李美玲", 左耳PTA="45"),
        ]
        specialists = aggregate_specialists(items)
        self.assertEqual([bucket.specialist for bucket in specialists], ["李美玲", "未知業務員", "王小明"])
        lee = specialists[0]
        self.assertEqual((lee.potential, lee.orders, lee.sales_total), (2, 1, 2000.0))
        self.assertEqual(lee.conversion_rate, 50.0)

    def test_specialist_without_potential_has_zero_rate(self):
        specialists = aggregate_specialists([classified(2, 主聽力師="陳大文", 左耳PTA="10")])
        self.assertEqual(specialists[0].potential, 0)
        self.assertEqual(specialists[0].conversion_rate, 0.0)


class ClinicTests(unittest.TestCase):
    def test_totals_rates_and_ordering(self):
        items = [
            classified(2, 診所名稱="康寧診所", 是否成交="是", 成交金額="1000"),
            classified(3, 診所名稱="仁愛診所", 左耳PTA="50"),
            classified(4, 診所名稱="仁愛診所"),
            classified(5, 診所名稱="仁愛診所", 是否成交="TRUE", 成交金額="3000"),
            classified(6, 診所名稱="  "),
            classified(7),
        ]
        clinics = aggregate_clinics(items)
        self.assertEqual([bucket.clinic for bucket in clinics], ["仁愛診所", "康寧診所"])
        renai = clinics[0]
        self.assertEqual((renai.total, renai.potential, renai.converted), (3, 2, 1))
        self.assertEqual(renai.total_amount, 3000.0)
        self.assertAlmostEqual(renai.conversion_rate, 100 / 3)

    def test_ties_keep_first_seen_order(self):
        items = [classified(2, 診所名稱="B診所"), classified(3, 診所名稱="A診所")]
        self.assertEqual([bucket.clinic for bucket in aggregate_clinics(items)], ["B診所", "A診所"])

    def test_clinic_uses_referral_conversion_rule(self):
        clinics = aggregate_clinics([classified(2, 診所名稱="仁愛診所", 是否有借機="是", 成交金額="500")])
        self.assertEqual(clinics[0].converted, 0)
        self.assertEqual(clinics[0].total_amount, 0.0)


class StoreTests(unittest.TestCase):
    def test_placeholder_and_blank_stores_are_skipped(self):
        items = [
            classified(2, **{"門市(自帶)": "桃園藝文店", "左耳PTA": "50"}),
            classified(3, **{"門市(自帶)": "#N/A", "左耳PTA": "50"}),
            classified(4, **{"門市(自帶)": ""}),
            classified(5, **{"門市(自帶)": "桃園龜山店"}),
            classified(6, **{"門市(自帶)": "桃園龜山店", "是否成交": "是"}),
        ]
        stores = aggregate_stores(items, "門市(自帶)")
        self.assertEqual([bucket.store for bucket in stores], ["桃園龜山店", "桃園藝文店"])
        self.assertEqual((stores[0].total, stores[0].potential), (2, 1))
        self.assertEqual((stores[1].total, stores[1].potential), (1, 1))

    def test_no_store_column_means_no_buckets(self):
        self.assertEqual(aggregate_stores([classified(2)], None), [])


class SourceMonthTests(unittest.TestCase):
    def test_only_screening_rows_grouped_by_service_date(self):
        items = [
            classified(2, 初次到店="2024/1/3", 服務日期="2024/2/10", 顧客來源="聽篩活動", 是否成交="是", 成交金額="700"),
            classified(3, 初次到店="2024/1/4", 顧客來源="聽篩", 左耳PTA="20"),
            classified(4, 初次到店="2024/1/5", 顧客來源="網路", 左耳PTA="80"),
            classified(5, 初次到店="2024/1/6", 服務日期="待確認", 顧客來源="聽篩", 左耳PTA="80"),
            classified(6, **{"初次到店": "2024/2/1", "顧客來源\n(可複選)": "里民聽篩"}),
        ]
        months = aggregate_source_months(items)
        self.assertEqual([bucket.month for bucket in months], ["2024年1月", "2024年2月"])
        january, february = months
        self.assertEqual((january.total, january.potential, january.converted), (1, 0, 0))
        self.assertEqual((february.total, february.potential, february.converted), (2, 1, 1))
        self.assertEqual(february.total_amount, 700.0)
        self.assertEqual(february.conversion_rate, 50.0)


if __name__ == "__main__":
    unittest.main()
