"""
Cell coercion: text, numbers, dates and spreadsheet serials.
Run: python -m pytest tests/test_normalizer.py -v
"""
import unittest
from datetime import date, datetime

from ingestion.decoder import SheetRow
from ingestion.normalizer import (
    DATE,
    NUMBER,
    TEXT,
    coerce_date,
    coerce_number,
    coerce_text,
    date_from_serial,
    normalize_row,
)
from schemas.records import ContributionCandidate


class TestCoerceText(unittest.TestCase):
    def test_blank_is_none(self):
        self.assertIsNone(coerce_text(None))
        self.assertIsNone(coerce_text("   "))

    def test_whole_float_loses_decimal_point(self):
        self.assertEqual(coerce_text(1234.0), "1234")

    def test_strings_are_trimmed(self):
        self.assertEqual(coerce_text("  REG001 "), "REG001")


class TestCoerceNumber(unittest.TestCase):
    def test_numeric_strings(self):
        self.assertEqual(coerce_number(" 12 "), 12.0)
        self.assertEqual(coerce_number("1,500.00"), 1500.0)

    def test_native_numbers(self):
        self.assertEqual(coerce_number(2500), 2500.0)
        self.assertEqual(coerce_number(12.5), 12.5)

    def test_unparseable_is_none(self):
        self.assertIsNone(coerce_number("abc"))
        self.assertIsNone(coerce_number(""))
        self.assertIsNone(coerce_number("nan"))

    def test_booleans_are_not_numbers(self):
        self.assertIsNone(coerce_number(True))


class TestCoerceDate(unittest.TestCase):
    def test_serial_45672_is_2025_01_15(self):
        self.assertEqual(date_from_serial(45672), date(2025, 1, 15))
        self.assertEqual(coerce_date(45672), date(2025, 1, 15))

    def test_serial_and_iso_string_agree(self):
        self.assertEqual(coerce_date(45672), coerce_date("2025-01-15"))

    def test_fractional_serial_keeps_calendar_day(self):
        self.assertEqual(coerce_date(45672.75), date(2025, 1, 15))

    def test_time_only_serial_is_none(self):
        self.assertIsNone(date_from_serial(0.5))

    def test_out_of_range_serial_is_none(self):
        self.assertIsNone(date_from_serial(1e12))

    def test_iso_string(self):
        self.assertEqual(coerce_date("2025-01-15"), date(2025, 1, 15))

    def test_datetime_cell(self):
        self.assertEqual(coerce_date(datetime(2025, 1, 15, 9, 30)), date(2025, 1, 15))

    def test_unparseable_is_none(self):
        self.assertIsNone(coerce_date("not a date"))
        self.assertIsNone(coerce_date(""))

    def test_partial_dates_are_none(self):
        self.assertIsNone(coerce_date("March"))
        self.assertIsNone(coerce_date("March 2025"))
        self.assertIsNone(coerce_date("12 March"))
        self.assertIsNone(coerce_date("2025-03"))

    def test_full_written_dates_still_parse(self):
        self.assertEqual(coerce_date("15 January 2025"), date(2025, 1, 15))
        self.assertEqual(coerce_date("2025-01-15T10:30:00"), date(2025, 1, 15))

    def test_serial_text_matches_serial_cell(self):
        self.assertEqual(coerce_date("45672"), date(2025, 1, 15))
        self.assertEqual(coerce_date(" 45672.75 "), date(2025, 1, 15))

    def test_small_number_text_is_a_serial_not_a_day_of_this_month(self):
        self.assertEqual(coerce_date("12"), coerce_date(12))

    def test_compact_digits_fall_back_to_calendar_date(self):
        self.assertEqual(coerce_date("20250115"), date(2025, 1, 15))


class TestNormalizeRow(unittest.TestCase):
    def test_builds_candidate_and_keeps_raw_cells(self):
        row = SheetRow(number=2, cells=["REG001", 1001.0, "Savings", 45672, "2,500"])
        columns = {"reg_no": 0, "staff_no": 1, "contribution_type": 2, "contribution_date": 3, "amount": 4}
        field_types = {
            "reg_no": TEXT,
            "staff_no": TEXT,
            "contribution_type": TEXT,
            "contribution_date": DATE,
            "amount": NUMBER,
        }
        candidate = normalize_row(row, columns, ContributionCandidate, field_types)
        self.assertEqual(candidate.row_number, 2)
        self.assertEqual(candidate.staff_no, "1001")
        self.assertEqual(candidate.contribution_date, date(2025, 1, 15))
        self.assertEqual(candidate.amount, 2500.0)
        self.assertEqual(candidate.source["amount"], "2,500")

    def test_absent_optional_column_is_none(self):
        row = SheetRow(number=3, cells=["REG001"])
        candidate = normalize_row(row, {"reg_no": 0}, ContributionCandidate, {"reg_no": TEXT, "amount": NUMBER})
        self.assertEqual(candidate.reg_no, "REG001")
        self.assertIsNone(candidate.amount)
        self.assertNotIn("amount", candidate.source)


if __name__ == "__main__":
    unittest.main()
