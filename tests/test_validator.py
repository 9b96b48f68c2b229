"""Tests for intent validation."""

from datetime import datetime, time, timezone

import pytest

from ledger_assistant.models.intent import (
    BulkDeleteIntent,
    ModifyIntent,
    QueryIntent,
    RecordedItem,
    RecordIntent,
    SetBudgetIntent,
)
from ledger_assistant.models.ledger import BudgetCategory, Category, TransactionKind
from ledger_assistant.validation import IntentValidator, ValidationError, parse_datetime


NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def validator():
    return IntentValidator(clock=lambda: NOW)


class TestParseDatetime:
    """Tests for ISO date parsing."""

    def test_date_only_expands_to_day_bounds(self):
        assert parse_datetime("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert parse_datetime("2024-05-01", end_of_day=True) == datetime.combine(
            datetime(2024, 5, 1).date(), time.max, tzinfo=timezone.utc
        )

    def test_datetime_keeps_time(self):
        assert parse_datetime("2024-05-01T08:30:00") == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_garbage_and_empty(self):
        assert parse_datetime("next tuesday-ish") is None
        assert parse_datetime("  ") is None
        assert parse_datetime(None) is None


class TestRecordValidation:
    """Tests for RECORD batches."""

    def test_valid_item_becomes_draft(self, validator):
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="lunch", amount=150, category="food", kind="expense", date="2024-05-10"),
        ]))
        assert not batch.issues
        draft = batch.drafts[0]
        assert draft.category == Category.FOOD
        assert draft.kind == TransactionKind.EXPENSE
        assert draft.occurred_at == datetime(2024, 5, 10, tzinfo=timezone.utc)

    def test_invalid_item_does_not_block_siblings(self, validator):
        """One bad item is rejected; the rest of the batch goes through."""
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="lunch", amount=None, category="Food", kind="expense"),
            RecordedItem(item="taxi", amount=80, category="Transport", kind="expense"),
        ]))
        assert [d.item for d in batch.drafts] == ["taxi"]
        assert batch.issues[0].field == "transactions[0].amount"

    def test_non_positive_amount_is_rejected(self, validator):
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="refund", amount=-5, category="Other", kind="expense"),
        ]))
        assert not batch.drafts
        assert batch.issues[0].issue_type == "invalid_value"

    def test_unknown_category_maps_to_other(self, validator):
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="gift", amount=40, category="Presents", kind="expense"),
        ]))
        assert batch.drafts[0].category == Category.OTHER

    def test_missing_date_is_now_without_fallback(self, validator):
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="lunch", amount=150, category="Food", kind="expense"),
        ]))
        assert batch.drafts[0].occurred_at == NOW
        assert batch.date_fallbacks == []

    def test_unparsable_date_falls_back_to_now(self, validator):
        batch = validator.validate_record(RecordIntent(transactions=[
            RecordedItem(item="lunch", amount=150, category="Food", kind="expense", date="someday"),
        ]))
        assert batch.drafts[0].occurred_at == NOW
        assert batch.date_fallbacks == ["lunch $150"]

    def test_empty_record(self, validator):
        batch = validator.validate_record(RecordIntent())
        assert batch.issues[0].issue_type == "empty"


class TestRangeValidation:
    """Tests for query and bulk-delete ranges."""

    def test_no_bounds_means_current_month(self, validator):
        date_range = validator.resolve_range(QueryIntent())
        assert date_range.start == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert date_range.end.month == 5
        assert date_range.end.day == 31

    def test_single_day_range(self, validator):
        date_range = validator.resolve_range(QueryIntent(start_date="2024-05-10", end_date="2024-05-10"))
        assert date_range.contains(datetime(2024, 5, 10, 23, 59, tzinfo=timezone.utc))
        assert not date_range.contains(datetime(2024, 5, 11, tzinfo=timezone.utc))

    def test_missing_end_is_completed_from_its_month(self, validator):
        date_range = validator.resolve_range(QueryIntent(start_date="2024-02-10"))
        assert date_range.start == datetime(2024, 2, 10, tzinfo=timezone.utc)
        assert date_range.end.day == 29

    def test_inverted_range_is_rejected(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.resolve_range(QueryIntent(start_date="2024-05-10", end_date="2024-05-01"))
        assert exc.value.field == "endDate"

    def test_unparsable_bound_is_rejected(self, validator):
        with pytest.raises(ValidationError):
            validator.resolve_range(QueryIntent(start_date="whenever"))

    def test_erase_bounds_are_never_defaulted(self, validator):
        start, end = validator.resolve_erase_bounds(BulkDeleteIntent(end_date="2024-05-31"))
        assert start is None
        assert end is not None

    def test_category_filter_ignores_unknown(self, validator):
        assert validator.category_filter("food") == Category.FOOD
        assert validator.category_filter("vacation") is None
        assert validator.category_filter(None) is None


class TestPatchAndBudget:
    """Tests for MODIFY patches and budgets."""

    def test_patch(self, validator):
        patch = validator.build_patch(ModifyIntent(new_amount=180, new_category="transport"))
        assert patch.changes() == {"amount": 180, "category": Category.TRANSPORT}

    def test_patch_ignores_blank_new_item(self, validator):
        patch = validator.build_patch(ModifyIntent(new_item="   ", new_amount=180))
        assert patch.changes() == {"amount": 180}

    def test_patch_rejects_unknown_category(self, validator):
        with pytest.raises(ValidationError):
            validator.build_patch(ModifyIntent(new_category="Vacation"))

    def test_patch_rejects_non_positive_amount(self, validator):
        with pytest.raises(ValidationError):
            validator.build_patch(ModifyIntent(new_amount=0))

    def test_budget(self, validator):
        assert validator.validate_budget(SetBudgetIntent(category="total", amount=5000)) == (
            BudgetCategory.TOTAL,
            5000.0,
        )

    def test_budget_rejects_bad_input(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_budget(SetBudgetIntent(category="Vacation", amount=100))
        with pytest.raises(ValidationError):
            validator.validate_budget(SetBudgetIntent(category="Food", amount=0))
