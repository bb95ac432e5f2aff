"""
Financial Summaries

DESIGN DECISION: Summaries are DERIVED, never stored.
Every figure is computed from a state snapshot on request, so a report
can never disagree with the lessons and packages it describes.

Only completed lessons earn money. Scheduled lessons count as upcoming
once their start is not in the past.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from lesson_ledger.coercion import round_money, to_utc, utc_now
from lesson_ledger.models.ledger import LedgerState, LessonStatus, Money


class Period(str, Enum):
    MONTH = "month"
    YEAR = "year"


class Metric(str, Enum):
    EARNINGS = "earnings"
    LESSONS = "lessons"


class StudentStats(BaseModel):
    """One row of the per-student table."""

    student_id: str
    name: str
    contact: str = ""
    earnings: Money = Decimal("0")
    lessons_count: int = 0


class LedgerSummary(BaseModel):
    """Headline figures for one period."""

    period: Period
    metric: Metric
    range_start: datetime
    range_end: datetime = Field(..., description="Exclusive upper bound")
    total_earnings: Money = Decimal("0")
    lessons_count: int = 0
    average_price: Optional[Money] = Field(
        default=None,
        description="None when no lesson was completed in the period",
    )
    total_students: int = 0
    upcoming_lessons: int = 0
    remaining_package_value: Money = Decimal("0")
    students: list[StudentStats] = Field(default_factory=list)


def period_range(period: Period, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Bounds of the month or year containing ``now``.

    Returns ``(start, end)`` with ``end`` exclusive, in the time zone of
    ``now`` (UTC by default).
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = to_utc(now)
    period = Period(period)

    if period == Period.YEAR:
        start = now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        return start, start.replace(year=start.year + 1)

    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


class LedgerReports:
    """
    Read-only reports over one ledger snapshot.

    GUARANTEES:
    - Never changes the state it was given
    - Money is rounded to cents only at the end of each sum
    """

    def __init__(self, state: LedgerState):
        self._state = state

    def remaining_package_value(self, student_id: Optional[str] = None) -> Decimal:
        """Prepaid value still sitting in packages, for one student or everyone."""
        students = self._state.students
        if student_id is not None:
            students = [s for s in students if s.id == student_id]
        return round_money(sum(
            (student.remaining_value for student in students),
            Decimal("0"),
        ))

    def summarize(
        self,
        period: Period = Period.MONTH,
        metric: Metric = Metric.EARNINGS,
        now: Optional[datetime] = None,
    ) -> LedgerSummary:
        """
        Build the dashboard summary for the current month or year.

        Per-student rows are sorted by ``metric``, highest first; ties
        keep the students' alphabetical order.
        """
        now = now or utc_now()
        if now.tzinfo is None:
            now = to_utc(now)
        period, metric = Period(period), Metric(metric)
        start, end = period_range(period, now)

        completed = [
            lesson for lesson in self._state.lessons
            if lesson.status == LessonStatus.COMPLETED and start <= lesson.start < end
        ]
        total_earnings = sum((lesson.price for lesson in completed), Decimal("0"))
        lessons_count = len(completed)

        rows = []
        for student in self._state.students:
            own = [lesson for lesson in completed if lesson.student_id == student.id]
            rows.append(StudentStats(
                student_id=student.id,
                name=student.name,
                contact=student.contact,
                earnings=round_money(sum((lesson.price for lesson in own), Decimal("0"))),
                lessons_count=len(own),
            ))

        if metric == Metric.EARNINGS:
            rows.sort(key=lambda row: row.earnings, reverse=True)
        else:
            rows.sort(key=lambda row: row.lessons_count, reverse=True)

        upcoming = sum(
            1 for lesson in self._state.lessons
            if lesson.status == LessonStatus.SCHEDULED and lesson.start >= now
        )

        return LedgerSummary(
            period=period,
            metric=metric,
            range_start=start,
            range_end=end,
            total_earnings=round_money(total_earnings),
            lessons_count=lessons_count,
            average_price=round_money(total_earnings / lessons_count) if lessons_count else None,
            total_students=len(self._state.students),
            upcoming_lessons=upcoming,
            remaining_package_value=self.remaining_package_value(),
            students=rows,
        )
