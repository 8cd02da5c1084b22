"""Tests for warranty date arithmetic."""

from datetime import date, datetime, timedelta, timezone

import pytest
from servicedesk.utils.dates import add_months, to_naive_utc, warranty_days_remaining, warranty_status


class TestAddMonths:
    """Calendar-month arithmetic used for warranty expiry."""

    def test_two_year_warranty(self):
        assert add_months(date(2024, 1, 15), 24) == date(2026, 1, 15)

    def test_eighteen_month_warranty_crosses_year(self):
        assert add_months(date(2024, 6, 1), 18) == date(2025, 12, 1)

    def test_zero_months(self):
        assert add_months(date(2024, 3, 10), 0) == date(2024, 3, 10)

    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2024, 8, 31), 1, date(2024, 9, 30)),
            (date(2024, 12, 31), 2, date(2025, 2, 28)),
        ],
    )
    def test_day_clamped_to_end_of_month(self, start, months, expected):
        assert add_months(start, months) == expected


class TestWarrantyFields:
    def test_active_before_expiry(self):
        now = datetime(2025, 1, 1, 12, 0)
        assert warranty_status(date(2026, 1, 15), now) == "ACTIVE"

    def test_expired_on_and_after_expiry(self):
        assert warranty_status(date(2025, 1, 1), datetime(2025, 1, 1, 0, 0)) == "EXPIRED"
        assert warranty_status(date(2025, 1, 1), datetime(2025, 3, 1)) == "EXPIRED"

    def test_days_remaining_rounds_up(self):
        now = datetime(2025, 1, 14, 12, 0)
        assert warranty_days_remaining(date(2025, 1, 15), now) == 1

    def test_days_remaining_never_negative(self):
        assert warranty_days_remaining(date(2024, 1, 1), datetime(2025, 1, 1)) == 0


def test_to_naive_utc():
    ist = timezone(timedelta(hours=5, minutes=30))
    assert to_naive_utc(datetime(2025, 1, 1, 5, 30, tzinfo=ist)) == datetime(2025, 1, 1, 0, 0)
    assert to_naive_utc(datetime(2025, 1, 1, 9, 0)) == datetime(2025, 1, 1, 9, 0)
    assert to_naive_utc(None) is None
