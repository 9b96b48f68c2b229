"""
Intent Validation

DESIGN DECISION: The language model hands us loosely typed strings.
This module is the single place where they become typed requests:
TransactionDraft, DateRange, TransactionPatch, budget targets.

Two kinds of problems are distinguished:

HARD FAILURES - ValidationError:
- Missing range boundary on a bulk delete
- Non-positive amount on a budget or an update
- Unknown budget category
These are raised before any store call and reported verbatim.

SOFT ISSUES - ValidationIssue:
- A recorded item with no amount, label or kind
These reject only that item; siblings in the same batch still go through.

The one thing validation repairs silently is an unparsable occurrence
date on a recorded item: it becomes "now" and is logged.
"""

from datetime import date, datetime, time, timezone
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ledger_assistant.models.intent import (
    RecordedItem,
    RecordIntent,
    SetBudgetIntent,
    RangeIntent,
    TargetedIntent,
)
from ledger_assistant.models.ledger import (
    BudgetCategory,
    Category,
    DateRange,
    TransactionDraft,
    TransactionKind,
    TransactionPatch,
    ValidationIssue,
    ensure_utc,
    utc_now,
)


logger = structlog.get_logger(__name__)


class ValidationError(Exception):
    """A request is invalid. ``message`` is safe to show to the user."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


# =============================================================================
# DATE PARSING
# =============================================================================

def _is_date_only(text: str) -> bool:
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def parse_datetime(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO 8601 date or datetime from the language model.

    A date without a time expands to the start of that day, or to its
    last microsecond when ``end_of_day`` is set. Returns None when the
    text is empty or unparsable.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if _is_date_only(text):
        day = date.fromisoformat(text)
        moment = time.max if end_of_day else time.min
        return datetime.combine(day, moment, tzinfo=timezone.utc)

    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _month_start(moment: datetime) -> datetime:
    return DateRange.month_of(moment).start


def _month_end(moment: datetime) -> datetime:
    return DateRange.month_of(moment).end


# =============================================================================
# RESULT MODELS
# =============================================================================

class RecordBatch(BaseModel):
    """Outcome of validating a RECORD intent."""

    drafts: list[TransactionDraft] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)
    date_fallbacks: list[str] = Field(
        default_factory=list,
        description="Labels of drafts whose date could not be parsed"
    )


# =============================================================================
# VALIDATOR
# =============================================================================

class IntentValidator:
    """
    Converts intent parameters into typed requests.

    Args:
        clock: Source of "now" for date fallbacks and default ranges
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    # -------------------------------------------------------------------------
    # RECORD
    # -------------------------------------------------------------------------

    def _validate_item(
        self,
        index: int,
        raw: RecordedItem,
        now: datetime,
        batch: RecordBatch,
    ) -> None:
        issues = []
        prefix = f"transactions[{index}]"

        if not raw.item or not raw.item.strip():
            issues.append(ValidationIssue(
                field=f"{prefix}.item",
                issue_type="missing",
                message="Item description is missing",
            ))

        if raw.amount is None:
            issues.append(ValidationIssue(
                field=f"{prefix}.amount",
                issue_type="missing",
                message=f"Amount is missing for '{raw.item or 'item'}'",
            ))
        elif raw.amount <= 0:
            issues.append(ValidationIssue(
                field=f"{prefix}.amount",
                issue_type="invalid_value",
                message=f"Amount must be greater than zero for '{raw.item or 'item'}'",
            ))

        kind = TransactionKind.parse(raw.kind)
        if kind is None:
            issues.append(ValidationIssue(
                field=f"{prefix}.kind",
                issue_type="missing" if not raw.kind else "invalid_value",
                message=f"Could not tell whether '{raw.item or 'item'}' is an expense or income",
            ))

        if not raw.category:
            issues.append(ValidationIssue(
                field=f"{prefix}.category",
                issue_type="missing",
                message=f"Category is missing for '{raw.item or 'item'}'",
            ))

        if issues:
            batch.issues.extend(issues)
            return

        category = Category.parse(raw.category)
        if category is None:
            logger.info("Unknown category mapped to Other", category=raw.category)
            category = Category.OTHER

        # No date at all means "now" as well, but only a garbled one is a fallback
        occurred_at = parse_datetime(raw.date)
        fell_back = occurred_at is None and bool(raw.date and raw.date.strip())
        if occurred_at is None:
            occurred_at = now

        try:
            draft = TransactionDraft(
                item=raw.item,
                amount=raw.amount,
                category=category,
                kind=kind,
                occurred_at=occurred_at,
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            batch.issues.append(ValidationIssue(
                field=f"{prefix}.{first['loc'][0]}",
                issue_type="invalid_value",
                message=first["msg"],
            ))
            return

        if fell_back:
            logger.warning(
                "Unparsable occurrence date, using now",
                raw_date=raw.date,
                item=draft.item,
            )
            batch.date_fallbacks.append(draft.label)

        batch.drafts.append(draft)

    def validate_record(self, intent: RecordIntent) -> RecordBatch:
        """Split a RECORD intent into valid drafts and per-item issues."""
        now = self._clock()
        batch = RecordBatch()
        for index, raw in enumerate(intent.transactions):
            self._validate_item(index, raw, now, batch)
        if not intent.transactions:
            batch.issues.append(ValidationIssue(
                field="transactions",
                issue_type="empty",
                message="No transactions found in the message",
            ))
        return batch

    # -------------------------------------------------------------------------
    # RANGES
    # -------------------------------------------------------------------------

    def _parse_bound(self, value: Optional[str], field: str, end_of_day: bool) -> Optional[datetime]:
        parsed = parse_datetime(value, end_of_day=end_of_day)
        if value and value.strip() and parsed is None:
            raise ValidationError(field, f"Could not understand the date '{value}'")
        return parsed

    def _build_range(self, start: datetime, end: datetime) -> DateRange:
        try:
            return DateRange(start=start, end=end)
        except PydanticValidationError:
            raise ValidationError("endDate", "The end date is before the start date")

    def resolve_range(self, intent: RangeIntent) -> DateRange:
        """
        Date range for QUERY, LIST and TOP_EXPENSE.

        No boundaries means the current month. A single boundary is
        completed with the start or end of its own month.
        """
        start = self._parse_bound(intent.start_date, "startDate", end_of_day=False)
        end = self._parse_bound(intent.end_date, "endDate", end_of_day=True)

        if start is None and end is None:
            return DateRange.month_of(self._clock())
        if start is None:
            start = _month_start(end)
        if end is None:
            end = _month_end(start)
        return self._build_range(start, end)

    def resolve_erase_bounds(
        self,
        intent: RangeIntent,
    ) -> tuple[Optional[datetime], Optional[datetime]]:
        """
        Boundaries for BULK_DELETE. Never defaulted.

        Missing boundaries are returned as None for the eraser to reject.
        Unparsable ones are rejected here.
        """
        start = self._parse_bound(intent.start_date, "startDate", end_of_day=False)
        end = self._parse_bound(intent.end_date, "endDate", end_of_day=True)
        return start, end

    def category_filter(self, value: Optional[str]) -> Optional[Category]:
        """Query filter category; unknown text is ignored rather than rejected."""
        category = Category.parse(value)
        if value and category is None:
            logger.info("Ignoring unknown category filter", category=value)
        return category

    # -------------------------------------------------------------------------
    # MODIFY / DELETE
    # -------------------------------------------------------------------------

    def build_patch(self, intent: TargetedIntent) -> TransactionPatch:
        """The fields an UPDATE should change."""
        category = None
        if intent.new_category:
            category = Category.parse(intent.new_category)
            if category is None:
                raise ValidationError(
                    "newCategory",
                    f"'{intent.new_category}' is not a category. "
                    f"Choose one of: {', '.join(c.value for c in Category)}",
                )

        if intent.new_amount is not None and intent.new_amount <= 0:
            raise ValidationError("newAmount", "The new amount must be greater than zero")

        try:
            return TransactionPatch(
                item=(intent.new_item or "").strip() or None,
                amount=intent.new_amount,
                category=category,
            )
        except PydanticValidationError:
            raise ValidationError("newItem", "The new item description is not valid")

    # -------------------------------------------------------------------------
    # BUDGETS
    # -------------------------------------------------------------------------

    def validate_budget(self, intent: SetBudgetIntent) -> tuple[BudgetCategory, float]:
        category = BudgetCategory.parse(intent.category)
        if category is None:
            raise ValidationError(
                "category",
                f"'{intent.category or ''}' is not a budget category. "
                f"Choose one of: {', '.join(c.value for c in BudgetCategory)}",
            )
        if intent.amount is None:
            raise ValidationError("amount", "Please tell me the budget amount")
        if intent.amount <= 0:
            raise ValidationError("amount", "The budget must be greater than zero")
        return category, float(intent.amount)

