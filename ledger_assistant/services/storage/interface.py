"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The store is the sole arbiter of per-record consistency: implementations
must serialize writes to a single record, but nothing here assumes
multi-record transactions.

Every call is keyed by owner. A store never returns another owner's data.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional
from uuid import UUID

from ledger_assistant.models.audit import AuditEvent
from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    Category,
    DateRange,
    SortOrder,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionKind,
)


# Fields that may be written through update_transaction
UPDATABLE_FIELDS = frozenset({"item", "amount", "category", "kind", "occurred_at"})


class LedgerStorageInterface(ABC):
    """
    Abstract interface for transaction and budget storage.

    Any storage implementation (Google Sheets, MongoDB, etc.)
    must implement the abstract methods. The concrete helpers are
    expressed in terms of find_transactions and may be overridden
    with native queries.
    """

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """Return the owner's transaction, or None."""
        pass

    @abstractmethod
    async def find_transactions(
        self,
        query: TransactionFilter,
        order: SortOrder = SortOrder.NEWEST_CREATED,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        Range/attribute query.

        Args:
            query: Which transactions to return
            order: Result ordering
            limit: Maximum number of results (None = all)
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        owner: str,
        transaction_id: UUID,
        changes: dict[str, Any],
    ) -> Optional[Transaction]:
        """
        Apply ``changes`` to one transaction and bump updated_at.

        Returns:
            The updated transaction, or None if it no longer exists
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """
        Delete one transaction.

        Returns:
            The deleted transaction, or None if it no longer exists
        """
        pass

    @abstractmethod
    async def delete_transactions(self, query: TransactionFilter) -> int:
        """Delete every matching transaction; return how many were deleted."""
        pass

    @abstractmethod
    async def list_owners(self) -> list[str]:
        """Every owner with at least one transaction."""
        pass

    async def count_transactions(self, query: TransactionFilter) -> int:
        return len(await self.find_transactions(query))

    async def find_duplicate(
        self,
        owner: str,
        draft: TransactionDraft,
        window: DateRange,
    ) -> Optional[Transaction]:
        """
        Find an existing record identical to ``draft`` whose occurrence
        date falls inside ``window``. Item comparison is exact.
        """
        candidates = await self.find_transactions(
            TransactionFilter(
                owner=owner,
                date_range=window,
                category=draft.category,
                kind=draft.kind,
                amount=draft.amount,
                item_contains=draft.item,
            )
        )
        for candidate in candidates:
            if candidate.item == draft.item:
                return candidate
        return None

    async def sum_expenses_by_category(
        self,
        owner: str,
        date_range: DateRange,
    ) -> dict[Category, float]:
        """Aggregate: expense totals per category for one owner and range."""
        totals: dict[Category, float] = {}
        expenses = await self.find_transactions(
            TransactionFilter(
                owner=owner,
                date_range=date_range,
                kind=TransactionKind.EXPENSE,
            )
        )
        for tx in expenses:
            totals[tx.category] = totals.get(tx.category, 0.0) + tx.amount
        return totals

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_budget(self, budget: Budget) -> Budget:
        """Insert or replace the budget for (owner, category)."""
        pass

    @abstractmethod
    async def get_budgets(
        self,
        owner: str,
        categories: Optional[Iterable[BudgetCategory]] = None,
    ) -> list[Budget]:
        """The owner's budgets, optionally restricted to some categories."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; True if stored."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one inbound message, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


def check_changes(changes: dict[str, Any]) -> None:
    """Reject writes to fields that are not updatable."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise StorageError(f"Fields cannot be updated: {sorted(unknown)}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
