import unittest
from datetime import date, datetime

from funnel_report.parsers import locale_date_label, month_label, parse_amount, parse_date


class ParseDateTests(unittest.TestCase):
    def test_year_first_with_slashes_and_dashes(self):
        self.assertEqual(parse_date("2024/03/15"), date(2024, 3, 15))
        self.assertEqual(parse_date("2024-3-5"), date(2024, 3, 5))

    def test_month_first_with_four_digit_year(self):
        self.assertEqual(parse_date("3/15/2024"), date(2024, 3, 15))
        self.assertEqual(parse_date("12-01-2023"), date(2023, 12, 1))

    def test_chinese_year_month_day(self):
        self.assertEqual(parse_date("2024年3月2日"), date(2024, 3, 2))
        self.assertEqual(parse_date("2024年11月20"), date(2024, 11, 20))

    def test_pattern_found_inside_longer_text(self):
        self.assertEqual(parse_date("到店 2024/1/5 上午"), date(2024, 1, 5))
        self.assertEqual(parse_date("2024-01-15 00:00:00"), date(2024, 1, 15))

    def test_structural_match_with_impossible_values_is_rejected(self):
        self.assertIsNone(parse_date("2024/2/30"))
        self.assertIsNone(parse_date("13/45/2024"))
        self.assertIsNone(parse_date("2024年13月1日"))

    def test_free_form_text_falls_back_to_general_parser(self):
        self.assertEqual(parse_date("March 5, 2024"), date(2024, 3, 5))

    def test_unusable_values_return_none(self):
        self.assertIsNone(parse_date(None))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date("   "))
        self.assertIsNone(parse_date("尚未到店"))

    def test_clock_relative_words_are_not_dates(self):
        for text in ("now", "today", "Today", "NOW", "tomorrow", "yesterday"):
            with self.subTest(text=text):
                self.assertIsNone(parse_date(text))

    def test_fallback_needs_a_four_digit_year(self):
        self.assertIsNone(parse_date("24/12/31"))
        self.assertIsNone(parse_date("March"))
        self.assertIsNone(parse_date("5 Mar"))
        self.assertEqual(parse_date("5 March 2024"), date(2024, 3, 5))

    def test_native_date_values_pass_through(self):
        self.assertEqual(parse_date(datetime(2024, 6, 1, 14, 30)), date(2024, 6, 1))
        self.assertEqual(parse_date(date(2024, 6, 1)), date(2024, 6, 1))


class ParseAmountTests(unittest.TestCase):
    def test_currency_text_with_separators(self):
        self.assertEqual(parse_amount("NT$152,000.00"), 152000.0)
        self.assertEqual(parse_amount("88,000"), 88000.0)
        self.assertEqual(parse_amount("15000"), 15000.0)

    def test_leading_number_wins_when_several_dots_remain(self):
        self.assertEqual(parse_amount("1.2.3"), 1.2)
        self.assertEqual(parse_amount("$.5"), 0.5)

    def test_non_numeric_returns_none(self):
        self.assertIsNone(parse_amount(None))
        self.assertIsNone(parse_amount(""))
        self.assertIsNone(parse_amount("未報價"))
        self.assertIsNone(parse_amount("..."))

    def test_numbers_are_accepted(self):
        self.assertEqual(parse_amount(45), 45.0)
        self.assertEqual(parse_amount(42.5), 42.5)


class LabelTests(unittest.TestCase):
    def test_month_label(self):
        self.assertEqual(month_label(date(2024, 3, 15)), "2024年3月")

    def test_locale_date_label_has_no_zero_padding(self):
        self.assertEqual(locale_date_label(date(2024, 3, 5)), "2024/3/5")


if __name__ == "__main__":
    unittest.main()
