"""Tests for the financial summaries."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from lesson_ledger.migration import migrate
from lesson_ledger.queries import LedgerReports, Metric, Period, period_range

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def lesson(lesson_id, student_id, start, price, status="completed"):
    return {"id": lesson_id, "studentId": student_id, "start": start, "price": price, "status": status}


@pytest.fixture
def state():
    return migrate({
        "students": [
            {"id": "s-anna", "name": "Anna", "packages": [
                {"id": "p1", "price": 1600, "totalLessons": 10, "remainingLessons": 3},
            ]},
            {"id": "s-boris", "name": "Boris", "packages": [
                {"id": "p2", "price": "1500,50", "totalLessons": 4, "remainingLessons": 2},
            ]},
            {"id": "s-vera", "name": "Vera"},
        ],
        "lessons": [
            lesson("a1", "s-anna", "2024-03-01T00:00:00Z", 1600),
            lesson("a2", "s-anna", "2024-03-10T10:00:00Z", 1600),
            lesson("b1", "s-boris", "2024-03-11T10:00:00Z", 2000),
            lesson("b2", "s-boris", "2024-02-28T10:00:00Z", 2000),  # previous month
            lesson("b3", "s-boris", "2024-04-01T00:00:00Z", 2000),  # next month
            lesson("a3", "s-anna", "2024-03-20T10:00:00Z", 1600, status="scheduled"),
            lesson("a4", "s-anna", "2024-03-02T10:00:00Z", 1600, status="scheduled"),  # past
        ],
    })


class TestPeriodRange:
    """Tests for period_range."""

    def test_month(self):
        """Test the bounds of the current month."""
        assert period_range(Period.MONTH, NOW) == (
            datetime(2024, 3, 1, tzinfo=timezone.utc),
            datetime(2024, 4, 1, tzinfo=timezone.utc),
        )

    def test_december(self):
        """Test the year rollover."""
        start, end = period_range("month", datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert (start.month, end.year, end.month) == (12, 2025, 1)

    def test_year(self):
        """Test the bounds of the current year."""
        assert period_range(Period.YEAR, NOW) == (
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def test_naive_now_is_utc(self):
        """Test that a naive reference time is read as UTC."""
        start, _ = period_range(Period.MONTH, datetime(2024, 3, 15))
        assert start.tzinfo == timezone.utc


class TestSummarize:
    """Tests for LedgerReports.summarize."""

    def test_month_totals(self, state):
        """Test earnings, count and average for the month."""
        summary = LedgerReports(state).summarize(Period.MONTH, Metric.EARNINGS, now=NOW)
        assert summary.lessons_count == 3
        assert summary.total_earnings == Decimal("5200.00")
        assert summary.average_price == Decimal("1733.33")
        assert summary.total_students == 3
        assert summary.upcoming_lessons == 1

    def test_year_totals(self, state):
        """Test that the year includes every completed lesson of 2024."""
        summary = LedgerReports(state).summarize(Period.YEAR, now=NOW)
        assert summary.lessons_count == 5
        assert summary.total_earnings == Decimal("9200.00")

    def test_students_sorted_by_earnings(self, state):
        """Test per-student rows ordered by money."""
        rows = LedgerReports(state).summarize(Period.MONTH, Metric.EARNINGS, now=NOW).students
        assert [(row.name, row.earnings) for row in rows] == [
            ("Anna", Decimal("3200.00")),
            ("Boris", Decimal("2000.00")),
            ("Vera", Decimal("0.00")),
        ]

    def test_students_sorted_by_lessons(self, state):
        """Test per-student rows ordered by lesson count, ties alphabetical."""
        rows = LedgerReports(state).summarize(Period.YEAR, Metric.LESSONS, now=NOW).students
        assert [(row.name, row.lessons_count) for row in rows] == [
            ("Boris", 3),
            ("Anna", 2),
            ("Vera", 0),
        ]

    def test_no_lessons_no_average(self):
        """Test the empty ledger."""
        summary = LedgerReports(migrate({})).summarize(now=NOW)
        assert summary.average_price is None
        assert summary.total_earnings == Decimal("0")
        assert summary.students == []

    def test_remaining_package_value(self, state):
        """Test prepaid value still in packages."""
        reports = LedgerReports(state)
        assert reports.remaining_package_value() == Decimal("7801.00")
        assert reports.remaining_package_value("s-boris") == Decimal("3001.00")
        assert reports.remaining_package_value("nope") == Decimal("0")
        assert LedgerReports(state).summarize(now=NOW).remaining_package_value == Decimal("7801.00")

    def test_json_form(self, state):
        """Test that money serializes as plain numbers."""
        data = LedgerReports(state).summarize(now=NOW).model_dump(mode="json")
        assert data["total_earnings"] == 5200.0
        assert data["period"] == "month"

    def test_unknown_period_rejected(self, state):
        """Test that only month and year exist."""
        with pytest.raises(ValueError):
            LedgerReports(state).summarize("week", now=NOW)
