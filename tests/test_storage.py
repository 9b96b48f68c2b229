"""
Tests for the storage backends.

The Sheets store runs against an in-process fake worksheet, so no
credentials or network are needed.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from ledger_assistant.models.audit import AuditEvent, AuditEventType
from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    Category,
    DateRange,
    SortOrder,
    TransactionFilter,
)
from ledger_assistant.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    StorageError,
)
from ledger_assistant.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    BUDGET_COLUMNS,
    TRANSACTION_COLUMNS,
)

from tests.conftest import OWNER, FakeClock, make_transaction


class FakeWorksheet:
    """The subset of gspread.Worksheet the store uses. Row 1 is the header."""

    def __init__(self, header):
        self.rows = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.budgets = FakeWorksheet(BUDGET_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_budgets_sheet(self):
        return self.budgets

    def get_audit_sheet(self):
        return self.audit

    def read_rows(self, sheet):
        return sheet.get_all_values()[1:]


class BrokenSheetsClient(FakeSheetsClient):
    def get_transactions_sheet(self):
        raise RuntimeError("quota exceeded")

    def get_audit_sheet(self):
        raise RuntimeError("quota exceeded")


def at(day):
    return datetime(2024, 5, day, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sheets"])
def backend(request, clock):
    if request.param == "memory":
        return InMemoryLedgerStore(clock=clock)
    return GoogleSheetsLedgerStore(FakeSheetsClient(), clock=clock)


class TestLedgerStoreContract:
    """Behaviour shared by every ledger store."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, backend):
        tx = await backend.save_transaction(make_transaction(amount=12.5))
        loaded = await backend.get_transaction(OWNER, tx.id)
        assert loaded == tx

    @pytest.mark.asyncio
    async def test_get_is_owner_scoped(self, backend):
        tx = await backend.save_transaction(make_transaction())
        assert await backend.get_transaction("someone-else", tx.id) is None

    @pytest.mark.asyncio
    async def test_find_with_order_limit_and_offset(self, backend):
        for day, amount in ((1, 10), (2, 30), (3, 20)):
            await backend.save_transaction(make_transaction(occurred_at=at(day), amount=amount))

        query = TransactionFilter(owner=OWNER)
        newest = await backend.find_transactions(query, order=SortOrder.NEWEST_OCCURRED)
        largest = await backend.find_transactions(query, order=SortOrder.LARGEST_AMOUNT, limit=1)
        second = await backend.find_transactions(query, order=SortOrder.NEWEST_CREATED, limit=1, offset=1)

        assert [tx.amount for tx in newest] == [20, 30, 10]
        assert [tx.amount for tx in largest] == [30]
        assert [tx.amount for tx in second] == [30]

    @pytest.mark.asyncio
    async def test_update_bumps_updated_at(self, backend, clock):
        tx = await backend.save_transaction(make_transaction())
        clock.advance(3600)

        updated = await backend.update_transaction(OWNER, tx.id, {"amount": 180.0, "category": Category.OTHER})

        assert updated.amount == 180
        assert updated.category == Category.OTHER
        assert updated.updated_at == clock()
        assert (await backend.get_transaction(OWNER, tx.id)).amount == 180

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, backend):
        tx = await backend.save_transaction(make_transaction())
        with pytest.raises(StorageError):
            await backend.update_transaction(OWNER, tx.id, {"owner": "someone-else"})

    @pytest.mark.asyncio
    async def test_update_and_delete_missing_record(self, backend):
        assert await backend.update_transaction(OWNER, uuid4(), {"amount": 1.0}) is None
        assert await backend.delete_transaction(OWNER, uuid4()) is None

    @pytest.mark.asyncio
    async def test_bulk_delete(self, backend):
        for day in (1, 5, 9, 20):
            await backend.save_transaction(make_transaction(occurred_at=at(day)))
        await backend.save_transaction(make_transaction(occurred_at=at(5), owner="someone-else"))

        deleted = await backend.delete_transactions(
            TransactionFilter(owner=OWNER, date_range=DateRange(start=at(1), end=at(9)))
        )

        assert deleted == 3
        remaining = await backend.find_transactions(TransactionFilter(owner=OWNER))
        assert [tx.occurred_at for tx in remaining] == [at(20)]
        assert await backend.list_owners() == [OWNER, "someone-else"]

    @pytest.mark.asyncio
    async def test_find_duplicate_requires_exact_item(self, backend):
        tx = await backend.save_transaction(make_transaction(item="lunch"))
        window = DateRange(start=at(15).replace(hour=11), end=at(15).replace(hour=13))

        assert (await backend.find_duplicate(OWNER, tx, window)).id == tx.id
        other = tx.model_copy(update={"item": "lun"})
        assert await backend.find_duplicate(OWNER, other, window) is None

    @pytest.mark.asyncio
    async def test_sum_expenses_by_category(self, backend):
        await backend.save_transaction(make_transaction(amount=100))
        await backend.save_transaction(make_transaction(amount=50))
        await backend.save_transaction(make_transaction(amount=70, category=Category.TRANSPORT))

        totals = await backend.sum_expenses_by_category(OWNER, DateRange.month_of(at(1)))

        assert totals == {Category.FOOD: 150, Category.TRANSPORT: 70}

    @pytest.mark.asyncio
    async def test_budget_upsert(self, backend):
        await backend.upsert_budget(Budget(owner=OWNER, category=BudgetCategory.FOOD, amount=1000))
        await backend.upsert_budget(Budget(owner=OWNER, category=BudgetCategory.FOOD, amount=1500))
        await backend.upsert_budget(Budget(owner=OWNER, category=BudgetCategory.TOTAL, amount=5000))
        await backend.upsert_budget(Budget(owner="someone-else", category=BudgetCategory.FOOD, amount=1))

        all_budgets = await backend.get_budgets(OWNER)
        food_only = await backend.get_budgets(OWNER, [BudgetCategory.FOOD])

        assert len(all_budgets) == 2
        assert [b.amount for b in food_only] == [1500]


class TestGoogleSheetsStore:
    """Sheets-specific behaviour."""

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped(self):
        client = FakeSheetsClient()
        store = GoogleSheetsLedgerStore(client, clock=FakeClock(at(1)))
        await store.save_transaction(make_transaction())
        client.transactions.rows.append(["not-a-uuid", OWNER, "expense", "abc"])

        assert len(await store.find_transactions(TransactionFilter(owner=OWNER))) == 1

    @pytest.mark.asyncio
    async def test_failures_surface_as_storage_error(self):
        store = GoogleSheetsLedgerStore(BrokenSheetsClient())
        with pytest.raises(StorageError):
            await store.save_transaction(make_transaction())
        with pytest.raises(StorageError):
            await store.find_transactions(TransactionFilter(owner=OWNER))

    @pytest.mark.asyncio
    async def test_audit_round_trip(self):
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            owner=OWNER,
            correlation_id=correlation_id,
            description="Budget set",
            details={"amount": 3000},
        )

        assert await storage.append_event(event)
        loaded = await storage.get_events_by_correlation_id(correlation_id)

        assert [e.event_id for e in loaded] == [event.event_id]
        assert loaded[0].details == {"amount": 3000}

    @pytest.mark.asyncio
    async def test_audit_write_failure_does_not_raise(self):
        storage = GoogleSheetsAuditStorage(BrokenSheetsClient())
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="boom")
        assert await storage.append_event(event) is False
