"""
Weekly Report

Every owner with transactions gets a summary of the previous
Monday-to-Sunday week. Owners with nothing recorded that week are
skipped. Delivery belongs to the transport: pass a ``send`` coroutine
to have each report handed over, or read the texts from the result.
"""

from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel

from ledger_assistant.models.ledger import DateRange, ensure_utc, utc_now
from ledger_assistant.queries.stats import StatsAggregator
from ledger_assistant.replies import render_weekly_report
from ledger_assistant.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)

Sender = Callable[[str, str], Awaitable[None]]


def previous_week_range(moment: datetime) -> DateRange:
    """
    Monday 00:00 to Sunday 23:59:59.999999 of the last completed week.

    On a Sunday the week ending that day counts as the previous week.
    """
    day = ensure_utc(moment).date()
    # Days since the most recent Sunday (0 on Sundays)
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    monday = sunday - timedelta(days=6)
    return DateRange(
        start=datetime.combine(monday, time.min, tzinfo=timezone.utc),
        end=datetime.combine(sunday, time.max, tzinfo=timezone.utc),
    )


class ReportStatus(str, Enum):
    READY = "ready"
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class WeeklyReport(BaseModel):
    owner: str
    status: ReportStatus
    text: Optional[str] = None
    error: Optional[str] = None


class WeeklyReporter:
    """Builds (and optionally sends) last week's summary for every owner."""

    def __init__(
        self,
        store: LedgerStorageInterface,
        stats: Optional[StatsAggregator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._stats = stats or StatsAggregator(store)
        self._clock = clock

    async def build_report(self, owner: str, week: DateRange) -> WeeklyReport:
        stats = await self._stats.compute_stats(owner, week)
        if stats.count == 0:
            logger.info("No transactions last week, skipping", owner=owner)
            return WeeklyReport(owner=owner, status=ReportStatus.SKIPPED)
        return WeeklyReport(
            owner=owner,
            status=ReportStatus.READY,
            text=render_weekly_report(stats),
        )

    async def run(self, send: Optional[Sender] = None) -> list[WeeklyReport]:
        """
        Produce one report per owner.

        A failed send marks that owner's report FAILED; the others
        still go out.
        """
        week = previous_week_range(self._clock())
        owners = await self._store.list_owners()
        logger.info("Processing weekly reports", owners=len(owners), start=week.start.isoformat())

        reports = []
        for owner in owners:
            report = await self.build_report(owner, week)
            if report.status == ReportStatus.READY and send is not None:
                try:
                    await send(owner, report.text)
                    report.status = ReportStatus.SENT
                except Exception as e:
                    logger.error("Failed to send weekly report", owner=owner, error=str(e))
                    report.status = ReportStatus.FAILED
                    report.error = str(e)
            reports.append(report)
        return reports
