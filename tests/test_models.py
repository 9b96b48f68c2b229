"""
Tests for Ledger Assistant models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with stubbed external services)
3. No real API calls in tests
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_assistant.models.intent import (
    BulkDeleteIntent,
    DeleteIntent,
    ModifyIntent,
    QueryIntent,
    RecordIntent,
    SetBudgetIntent,
    UnknownIntent,
    parse_intent,
)
from ledger_assistant.models.ledger import (
    BudgetCategory,
    Category,
    DateRange,
    MutationAction,
    SortOrder,
    TransactionDraft,
    TransactionFilter,
    TransactionKind,
    TransactionPatch,
    format_amount,
    sort_transactions,
)

from tests.conftest import OWNER, make_transaction


class TestLedgerModels:
    """Tests for transaction and query value objects."""

    def test_draft_rejects_non_positive_amount(self):
        """Amounts must be strictly positive."""
        with pytest.raises(ValidationError):
            TransactionDraft(
                item="lunch",
                amount=0,
                category=Category.FOOD,
                kind=TransactionKind.EXPENSE,
                occurred_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            )

    def test_naive_dates_are_treated_as_utc(self):
        """Naive datetimes get UTC attached."""
        draft = TransactionDraft(
            item="  lunch  ",
            amount=150,
            category=Category.FOOD,
            kind=TransactionKind.EXPENSE,
            occurred_at=datetime(2024, 5, 1, 12, 0),
        )
        assert draft.item == "lunch"
        assert draft.occurred_at.tzinfo == timezone.utc

    def test_transaction_summary(self):
        tx = make_transaction(item="lunch", amount=150)
        assert tx.summary == "2024-05-15 lunch $150 (Food)"

    def test_format_amount(self):
        assert format_amount(150.0) == "150"
        assert format_amount(12.5) == "12.50"
        assert format_amount(1200) == "1,200"

    def test_category_parse_is_case_insensitive(self):
        assert Category.parse("food") == Category.FOOD
        assert Category.parse(" TRANSPORT ") == Category.TRANSPORT
        assert Category.parse("groceries") is None
        assert BudgetCategory.parse("total") == BudgetCategory.TOTAL

    def test_date_range_rejects_inverted_bounds(self):
        with pytest.raises(ValidationError):
            DateRange(
                start=datetime(2024, 5, 2, tzinfo=timezone.utc),
                end=datetime(2024, 5, 1, tzinfo=timezone.utc),
            )

    def test_month_of_covers_whole_month(self):
        month = DateRange.month_of(datetime(2024, 12, 15, 8, 30, tzinfo=timezone.utc))
        assert month.start == datetime(2024, 12, 1, tzinfo=timezone.utc)
        assert month.end == datetime(2025, 1, 1, tzinfo=timezone.utc) - timedelta(microseconds=1)

    def test_filter_never_matches_other_owner(self):
        query = TransactionFilter(owner=OWNER)
        assert query.matches(make_transaction())
        assert not query.matches(make_transaction(owner="someone-else"))

    def test_filter_item_contains_is_case_insensitive(self):
        query = TransactionFilter(owner=OWNER, item_contains="LUN")
        assert query.matches(make_transaction(item="Lunch with Sam"))
        assert not query.matches(make_transaction(item="coffee"))

    def test_filter_requires_owner(self):
        with pytest.raises(ValidationError):
            TransactionFilter(owner="")

    def test_sort_newest_created_breaks_ties_by_insertion(self):
        """Among equal timestamps the most recently inserted comes first."""
        first = make_transaction(item="first")
        second = make_transaction(item="second")
        ordered = sort_transactions([first, second], SortOrder.NEWEST_CREATED)
        assert [t.item for t in ordered] == ["second", "first"]

    def test_sort_largest_amount(self):
        small = make_transaction(amount=10)
        big = make_transaction(amount=500)
        ordered = sort_transactions([small, big], SortOrder.LARGEST_AMOUNT)
        assert ordered[0].amount == 500

    def test_patch_changes_only_set_fields(self):
        patch = TransactionPatch(amount=180)
        assert patch.changes() == {"amount": 180}
        assert TransactionPatch().is_empty


class TestIntentModels:
    """Tests for intent parsing."""

    def test_record_intent_with_camel_case_payload(self):
        intent = parse_intent({
            "intent": "record",
            "transactions": [
                {"item": "lunch", "amount": 150, "category": "Food", "type": "expense", "date": "2024-05-01"},
            ],
        })
        assert isinstance(intent, RecordIntent)
        assert intent.transactions[0].kind == "expense"
        assert intent.transactions[0].date == "2024-05-01"

    def test_range_intent_aliases(self):
        intent = parse_intent({"kind": "QUERY", "startDate": "2024-05-01", "endDate": "2024-05-31"})
        assert isinstance(intent, QueryIntent)
        assert intent.start_date == "2024-05-01"
        assert intent.end_date == "2024-05-31"

    def test_targeted_intents_carry_action(self):
        delete = parse_intent({"kind": "DELETE", "targetItem": "lunch"})
        modify = parse_intent({"kind": "MODIFY", "targetAmount": 150, "newAmount": 180})
        assert isinstance(delete, DeleteIntent)
        assert delete.action == MutationAction.DELETE
        assert isinstance(modify, ModifyIntent)
        assert modify.action == MutationAction.UPDATE
        assert modify.new_amount == 180

    def test_bulk_delete_and_budget(self):
        assert isinstance(parse_intent({"kind": "BULK_DELETE"}), BulkDeleteIntent)
        budget = parse_intent({"kind": "SET_BUDGET", "category": "Food", "amount": 3000})
        assert isinstance(budget, SetBudgetIntent)
        assert budget.amount == 3000

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_intent({"kind": "TRANSFER"})

    def test_unknown_intent(self):
        assert isinstance(parse_intent({"kind": "unknown"}), UnknownIntent)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Saved lunch $150",
        )
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_sheets_row(self):
        """Rows always have the twelve audit columns."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            owner=OWNER,
            description="Budget set",
            details={"amount": 3000},
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "budget_set"
        assert row[4] == OWNER
        assert '"amount": 3000' in row[9]

    def test_builder_date_fallback_is_warning(self):
        event = AuditEventBuilder.date_fallback(OWNER, ["lunch $150"], None)
        assert event.event_type == AuditEventType.DATE_FALLBACK
        assert event.severity == AuditSeverity.WARNING
