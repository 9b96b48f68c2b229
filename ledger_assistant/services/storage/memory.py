"""
In-Memory Storage Implementation

Used by the test suite and as the fallback backend when Google Sheets
is not configured. Data lives only as long as the process.

A single asyncio.Lock serializes writes, which gives the same
single-record consistency a document store would.
"""

import asyncio
from typing import Any, Callable, Iterable, Optional
from datetime import datetime
from uuid import UUID

from ledger_assistant.models.audit import AuditEvent
from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    SortOrder,
    Transaction,
    TransactionFilter,
    sort_transactions,
    utc_now,
)
from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    check_changes,
)


class InMemoryLedgerStore(LedgerStorageInterface):
    """Transactions and budgets held in process memory."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        # Insertion order is preserved; sort_transactions relies on it
        self._transactions: dict[UUID, Transaction] = {}
        self._budgets: dict[tuple[str, BudgetCategory], Budget] = {}
        self._lock = asyncio.Lock()

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            self._transactions[transaction.id] = transaction.model_copy()
        return transaction

    async def get_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        tx = self._transactions.get(transaction_id)
        if tx is None or tx.owner != owner:
            return None
        return tx.model_copy()

    async def find_transactions(
        self,
        query: TransactionFilter,
        order: SortOrder = SortOrder.NEWEST_CREATED,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        matches = [tx for tx in self._transactions.values() if query.matches(tx)]
        ordered = sort_transactions(matches, order)
        end = None if limit is None else offset + limit
        return [tx.model_copy() for tx in ordered[offset:end]]

    async def update_transaction(
        self,
        owner: str,
        transaction_id: UUID,
        changes: dict[str, Any],
    ) -> Optional[Transaction]:
        check_changes(changes)
        async with self._lock:
            current = self._transactions.get(transaction_id)
            if current is None or current.owner != owner:
                return None
            updated = Transaction.model_validate({
                **current.model_dump(),
                **changes,
                "updated_at": self._clock(),
            })
            self._transactions[transaction_id] = updated
        return updated.model_copy()

    async def delete_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        async with self._lock:
            current = self._transactions.get(transaction_id)
            if current is None or current.owner != owner:
                return None
            del self._transactions[transaction_id]
        return current

    async def delete_transactions(self, query: TransactionFilter) -> int:
        async with self._lock:
            doomed = [
                tx_id for tx_id, tx in self._transactions.items()
                if query.matches(tx)
            ]
            for tx_id in doomed:
                del self._transactions[tx_id]
        return len(doomed)

    async def list_owners(self) -> list[str]:
        return sorted({tx.owner for tx in self._transactions.values()})

    async def upsert_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            self._budgets[(budget.owner, budget.category)] = budget.model_copy()
        return budget

    async def get_budgets(
        self,
        owner: str,
        categories: Optional[Iterable[BudgetCategory]] = None,
    ) -> list[Budget]:
        wanted = set(categories) if categories is not None else None
        return [
            budget.model_copy()
            for (budget_owner, category), budget in self._budgets.items()
            if budget_owner == owner and (wanted is None or category in wanted)
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
