"""Periodic reports package."""

from ledger_assistant.reports.weekly import (
    ReportStatus,
    WeeklyReport,
    WeeklyReporter,
    previous_week_range,
)

__all__ = [
    "ReportStatus",
    "WeeklyReport",
    "WeeklyReporter",
    "previous_week_range",
]
