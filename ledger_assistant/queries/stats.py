"""
Stats Aggregator

DESIGN DECISION: Aggregation is DETERMINISTIC and runs on stored data
only. Answers are never estimated by the language model.

compute_stats reads ONE filtered snapshot and derives both groupings
from it (totals by kind, expense totals by category). total_expense is
the sum of the breakdown, so the two can never disagree about which
records they summarize.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ledger_assistant.config import get_settings
from ledger_assistant.models.ledger import (
    Category,
    CategoryTotal,
    DateRange,
    SortOrder,
    StatsResult,
    TopExpenseResult,
    Transaction,
    TransactionFilter,
    TransactionKind,
    TransactionPage,
)
from ledger_assistant.services.storage.interface import LedgerStorageInterface
from ledger_assistant.validation.validator import ValidationError


logger = structlog.get_logger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def category_breakdown(transactions: list[Transaction]) -> list[CategoryTotal]:
    """Expense totals per category, largest first."""
    totals: dict[Category, float] = {}
    for tx in transactions:
        if tx.kind == TransactionKind.EXPENSE:
            totals[tx.category] = totals.get(tx.category, 0.0) + tx.amount
    return sorted(
        (CategoryTotal(category=category, total=total) for category, total in totals.items()),
        key=lambda c: c.total,
        reverse=True,
    )


class StatsAggregator:
    """
    Read-only queries over one owner's ledger.

    GUARANTEES:
    - Only returns real data from storage
    - Never crosses owners
    - Empty ranges produce zero totals, not errors
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        list_limit: Optional[int] = None,
    ):
        self._store = store
        self._list_limit = list_limit or get_settings().app.transaction_list_limit

    async def compute_stats(
        self,
        owner: str,
        date_range: DateRange,
        category: Optional[Category] = None,
    ) -> StatsResult:
        """Totals, expense breakdown and count for a range."""
        snapshot = await self._store.find_transactions(
            TransactionFilter(owner=owner, date_range=date_range, category=category)
        )

        breakdown = category_breakdown(snapshot)
        total_income = sum(
            tx.amount for tx in snapshot if tx.kind == TransactionKind.INCOME
        )

        result = StatsResult(
            date_range=date_range,
            category=category,
            total_expense=sum(c.total for c in breakdown),
            total_income=total_income,
            breakdown=breakdown,
            count=len(snapshot),
        )
        logger.debug("Stats computed", owner=owner, count=result.count)
        return result

    async def get_transaction_list(
        self,
        owner: str,
        date_range: DateRange,
        category: Optional[Category] = None,
    ) -> list[Transaction]:
        """The newest records in range, capped for chat display."""
        return await self._store.find_transactions(
            TransactionFilter(owner=owner, date_range=date_range, category=category),
            order=SortOrder.NEWEST_OCCURRED,
            limit=self._list_limit,
        )

    async def get_top_expense(
        self,
        owner: str,
        date_range: DateRange,
        category: Optional[Category] = None,
    ) -> TopExpenseResult:
        """
        Top category by summed spend and top single expense.

        The two are computed independently: the top item need not belong
        to the top category.
        """
        query = TransactionFilter(
            owner=owner,
            date_range=date_range,
            category=category,
            kind=TransactionKind.EXPENSE,
        )
        breakdown = category_breakdown(await self._store.find_transactions(query))
        largest = await self._store.find_transactions(
            query,
            order=SortOrder.LARGEST_AMOUNT,
            limit=1,
        )
        return TopExpenseResult(
            top_category=breakdown[0] if breakdown else None,
            top_item=largest[0] if largest else None,
        )

    async def search_transactions(
        self,
        owner: str,
        date_range: Optional[DateRange] = None,
        category: Optional[Category] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TransactionPage:
        """
        Paged listing, newest occurrence first.

        Either ``date_range`` or the open-ended ``start`` / ``end`` bounds
        narrow the listing; a missing bound leaves that side unlimited.
        """
        if page < 1:
            raise ValidationError("page", "Page must be 1 or greater")
        if limit < 1:
            raise ValidationError("limit", "Limit must be 1 or greater")
        if date_range is None and (start or end):
            try:
                date_range = DateRange(start=start or _EARLIEST, end=end or _LATEST)
            except PydanticValidationError:
                raise ValidationError("endDate", "End date cannot be before start date")

        query = TransactionFilter(
            owner=owner,
            date_range=date_range,
            category=category,
            item_contains=(search or "").strip() or None,
        )
        total = await self._store.count_transactions(query)
        items = await self._store.find_transactions(
            query,
            order=SortOrder.NEWEST_OCCURRED,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return TransactionPage(items=items, total=total, page=page, limit=limit)
