"""Tests for the duplicate-guarded write path."""

import pytest

from ledger_assistant.ledger import LedgerWriter
from ledger_assistant.models.ledger import (
    Category,
    TransactionDraft,
    TransactionFilter,
    TransactionKind,
    ValidationIssue,
)

from tests.conftest import OWNER


def draft(clock, item="lunch", amount=150.0, category=Category.FOOD):
    return TransactionDraft(
        item=item,
        amount=amount,
        category=category,
        kind=TransactionKind.EXPENSE,
        occurred_at=clock(),
    )


class TestLedgerWriter:
    """Tests for LedgerWriter.create_many."""

    @pytest.mark.asyncio
    async def test_identical_record_within_window_is_suppressed(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        await writer.create_many(OWNER, [draft(clock)])

        clock.advance(60)
        result = await writer.create_many(OWNER, [draft(clock)])

        assert result.saved == []
        assert result.duplicates == ["lunch $150"]
        assert len(await store.find_transactions(TransactionFilter(owner=OWNER))) == 1

    @pytest.mark.asyncio
    async def test_identical_record_after_window_is_saved(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        first = draft(clock)
        await writer.create_many(OWNER, [first])

        clock.advance(301)
        result = await writer.create_many(OWNER, [first])

        assert len(result.saved) == 1
        assert result.duplicates == []

    @pytest.mark.asyncio
    async def test_different_amount_is_not_a_duplicate(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        await writer.create_many(OWNER, [draft(clock)])
        result = await writer.create_many(OWNER, [draft(clock, amount=151)])
        assert len(result.saved) == 1

    @pytest.mark.asyncio
    async def test_item_comparison_is_exact(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        await writer.create_many(OWNER, [draft(clock, item="lunch")])
        result = await writer.create_many(OWNER, [draft(clock, item="lunch box")])
        assert len(result.saved) == 1

    @pytest.mark.asyncio
    async def test_other_owner_is_not_a_duplicate(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        await writer.create_many("someone-else", [draft(clock)])
        result = await writer.create_many(OWNER, [draft(clock)])
        assert len(result.saved) == 1

    @pytest.mark.asyncio
    async def test_duplicate_does_not_block_siblings(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        await writer.create_many(OWNER, [draft(clock)])

        result = await writer.create_many(
            OWNER,
            [draft(clock), draft(clock, item="taxi", amount=80, category=Category.TRANSPORT)],
        )

        assert [tx.item for tx in result.saved] == ["taxi"]
        assert result.duplicates == ["lunch $150"]

    @pytest.mark.asyncio
    async def test_rejections_are_carried_through(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        issue = ValidationIssue(field="transactions[0].amount", issue_type="missing", message="Amount is missing")
        result = await writer.create_many(OWNER, [], rejected=[issue])
        assert result.rejected == [issue]
        assert result.saved == []

    @pytest.mark.asyncio
    async def test_saved_record_is_stamped_with_clock(self, store, clock):
        writer = LedgerWriter(store, clock, window_seconds=300)
        result = await writer.create_many(OWNER, [draft(clock)])
        saved = result.saved[0]
        assert saved.owner == OWNER
        assert saved.created_at == clock()
        assert await writer.is_duplicate(OWNER, draft(clock))
