from datetime import date, datetime
from decimal import Decimal

import pytest

from rentaldesk.pricing import (
    days_label,
    format_date,
    format_money,
    format_plain,
    line_amount,
    rendered_line_amount,
    rental_days,
    to_amount,
)


class TestLineAmount:

    def test_price_times_quantity(self):
        assert line_amount(50, 4) == Decimal("200")

    def test_accepts_numeric_strings(self):
        assert line_amount("12.50", "2") == Decimal("25.00")

    @pytest.mark.parametrize("bad", [None, "", "abc", float("nan"), float("inf"), "-Infinity", True, [1]])
    def test_garbage_price_counts_as_zero(self, bad):
        assert line_amount(bad, 3) == Decimal("0")

    def test_negative_counts_as_zero(self):
        assert line_amount(-10, 2) == Decimal("0")
        assert line_amount(10, -2) == Decimal("0")

    def test_fractional_quantity_is_kept(self):
        assert line_amount(10, 2.5) == Decimal("25")
        assert line_amount("4", "0.75") == Decimal("3")

    def test_rounds_half_up_to_cents(self):
        assert line_amount("0.005", 1) == Decimal("0.01")
        assert line_amount("0.125", 3) == Decimal("0.38")
        assert line_amount("19.99", 3) == Decimal("59.97")

    def test_to_amount_keeps_decimals(self):
        assert to_amount(Decimal("19.99")) == Decimal("19.99")


class TestRentalDays:

    def test_same_day_is_one(self):
        assert rental_days(date(2024, 1, 1), date(2024, 1, 1)) == 1

    def test_missing_dates_is_one(self):
        assert rental_days(None, None) == 1
        assert rental_days(date(2024, 1, 1), None) == 1
        assert rental_days(None, "2024-01-05") == 1

    def test_end_before_start_is_one(self):
        assert rental_days("2024-01-10", "2024-01-01") == 1

    def test_inclusive_count(self):
        assert rental_days("2024-01-01", "2024-01-03") == 3

    def test_crosses_month_and_leap_day(self):
        assert rental_days(date(2024, 2, 28), date(2024, 3, 1)) == 3

    def test_accepts_datetimes(self):
        assert rental_days(datetime(2024, 1, 1, 23, 0), datetime(2024, 1, 2, 1, 0)) == 2

    def test_unparseable_date_is_one(self):
        assert rental_days("not-a-date", "2024-01-03") == 1


class TestRenderedAmount:

    def test_multiplies_by_days(self):
        assert rendered_line_amount(Decimal("400"), 3) == Decimal("1200")

    def test_garbage_stored_amount_is_zero(self):
        assert rendered_line_amount("x", 3) == Decimal("0")


class TestFormatting:

    def test_money_two_decimals(self):
        assert format_money(Decimal("1200")) == "1200.00"
        assert format_money(Decimal("0.005")) == "0.01"

    def test_plain_drops_trailing_zeros(self):
        assert format_plain(Decimal("50.00")) == "50"
        assert format_plain(Decimal("12.50")) == "12.5"
        assert format_plain(Decimal("100")) == "100"

    def test_day_label_pluralises(self):
        assert days_label(1) == "1 Day"
        assert days_label(3) == "3 Days"

    def test_date_format(self):
        assert format_date(date(2024, 1, 3)) == "03/01/2024"
        assert format_date(None) == "-"
