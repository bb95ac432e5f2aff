"""Financial summaries package."""

from lesson_ledger.queries.summary import (
    LedgerReports,
    LedgerSummary,
    Metric,
    Period,
    StudentStats,
    period_range,
)

__all__ = [
    "LedgerReports",
    "LedgerSummary",
    "Metric",
    "Period",
    "StudentStats",
    "period_range",
]
