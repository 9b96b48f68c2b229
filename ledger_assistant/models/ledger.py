"""
Core Data Models for Ledger Assistant

These models define the strict schemas for all ledger data flowing
through the system. They are designed to:
1. Enforce type safety at runtime
2. Make invalid queries unrepresentable (DateRange, TransactionFilter)
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: All timestamps are timezone-aware UTC datetimes.
Naive values coming from storage or the language model are treated as UTC.
"""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Literal, Optional, TypeVar
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_amount(amount: float) -> str:
    """Render an amount the way people type it: 150, 12.50, 1,200."""
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

_E = TypeVar("_E", bound=Enum)


def _match_enum(enum_cls: type[_E], value: Optional[str]) -> Optional[_E]:
    if not value:
        return None
    needle = value.strip().lower()
    for member in enum_cls:
        if member.value.lower() == needle:
            return member
    return None


class Category(str, Enum):
    """
    Transaction categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and enables reliable aggregation.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    SALARY = "Salary"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Category"]:
        """Case-insensitive lookup; None when the text is not a category."""
        return _match_enum(cls, value)


class BudgetCategory(str, Enum):
    """Budget targets: every transaction category plus the aggregate 'Total'."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    SALARY = "Salary"
    OTHER = "Other"
    TOTAL = "Total"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BudgetCategory"]:
        return _match_enum(cls, value)


class TransactionKind(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["TransactionKind"]:
        return _match_enum(cls, value)


class MutationAction(str, Enum):
    """What to do with a resolved transaction."""
    DELETE = "DELETE"
    UPDATE = "UPDATE"


class SortOrder(str, Enum):
    """Result ordering supported by every store."""
    NEWEST_CREATED = "newest_created"
    NEWEST_OCCURRED = "newest_occurred"
    LARGEST_AMOUNT = "largest_amount"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A validated transaction that has not been persisted yet.

    The validation layer produces these from raw intent data.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    item: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Free-text label, e.g. 'lunch'"
    )
    amount: float = Field(
        ...,
        gt=0,
        description="Positive amount"
    )
    category: Category
    kind: TransactionKind
    occurred_at: datetime = Field(
        ...,
        description="When the event happened (not when it was recorded)"
    )

    @field_validator("occurred_at")
    @classmethod
    def normalize_occurred_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def label(self) -> str:
        """Short label used in duplicate feedback: 'lunch $150'."""
        return f"{self.item} ${format_amount(self.amount)}"


class Transaction(TransactionDraft):
    """
    A recorded financial event.

    Owned by exactly one owner; never visible to anyone else.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    owner: str = Field(
        ...,
        min_length=1,
        description="Opaque owner identifier"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the record was created"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last update timestamp"
    )

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def summary(self) -> str:
        """'2024-05-01 lunch $150 (Food)'"""
        return (
            f"{self.occurred_at:%Y-%m-%d} {self.item} "
            f"${format_amount(self.amount)} ({self.category.value})"
        )

    @classmethod
    def from_draft(
        cls,
        owner: str,
        draft: TransactionDraft,
        now: datetime,
    ) -> "Transaction":
        return cls(
            owner=owner,
            created_at=now,
            updated_at=now,
            **draft.model_dump(),
        )


class TransactionPatch(BaseModel):
    """
    Partial update for a transaction.

    Only fields that are set are applied. Occurrence date and kind
    are deliberately not patchable through the chat path.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    item: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[Category] = None

    @property
    def is_empty(self) -> bool:
        return not self.changes()

    def changes(self) -> dict:
        """Fields to apply, keyed by Transaction attribute name."""
        return self.model_dump(exclude_none=True)


# =============================================================================
# QUERY VALUE OBJECTS
# =============================================================================

class DateRange(BaseModel):
    """Inclusive [start, end] range of occurrence dates."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("Range end cannot be before start")
        return self

    def contains(self, moment: datetime) -> bool:
        return self.start <= ensure_utc(moment) <= self.end

    @classmethod
    def month_of(cls, moment: datetime) -> "DateRange":
        """The calendar month containing ``moment``."""
        moment = ensure_utc(moment)
        start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if start.month == 12:
            next_start = start.replace(year=start.year + 1, month=1)
        else:
            next_start = start.replace(month=start.month + 1)
        return cls(start=start, end=next_start - timedelta(microseconds=1))

    @classmethod
    def trailing(cls, end: datetime, seconds: int) -> "DateRange":
        """The window of ``seconds`` ending at ``end``."""
        return cls(start=end - timedelta(seconds=seconds), end=end)


class TransactionFilter(BaseModel):
    """
    The only way to describe which transactions a store call touches.

    Owner is mandatory, so a query can never cross owners.
    """
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1)
    date_range: Optional[DateRange] = None
    category: Optional[Category] = None
    kind: Optional[TransactionKind] = None
    item_contains: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Case-insensitive substring of the item label"
    )
    amount: Optional[float] = Field(
        default=None,
        gt=0,
        description="Exact amount"
    )

    def matches(self, tx: Transaction) -> bool:
        if tx.owner != self.owner:
            return False
        if self.date_range and not self.date_range.contains(tx.occurred_at):
            return False
        if self.category and tx.category != self.category:
            return False
        if self.kind and tx.kind != self.kind:
            return False
        if self.item_contains and self.item_contains.lower() not in tx.item.lower():
            return False
        if self.amount is not None and tx.amount != self.amount:
            return False
        return True


def sort_transactions(
    transactions: Iterable[Transaction],
    order: SortOrder,
) -> list[Transaction]:
    """
    Sort transactions for a store result.

    ``transactions`` must be in insertion order: among equal keys the most
    recently inserted record comes first.
    """
    if order == SortOrder.NEWEST_CREATED:
        key = lambda t: t.created_at
    elif order == SortOrder.NEWEST_OCCURRED:
        key = lambda t: (t.occurred_at, t.created_at)
    else:
        key = lambda t: t.amount
    return sorted(reversed(list(transactions)), key=key, reverse=True)


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """A monthly spending limit. At most one per (owner, category)."""

    owner: str = Field(..., min_length=1)
    category: BudgetCategory
    amount: float = Field(..., gt=0, description="Monthly limit")
    period: Literal["monthly"] = "monthly"
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("updated_at")
    @classmethod
    def normalize_updated_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class BudgetStatus(BaseModel):
    """Current-month spend against one budget."""

    category: BudgetCategory
    limit: float
    spent: float
    remaining: float
    percentage: int
    is_over_budget: bool


# =============================================================================
# RESULT MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class CreateResult(BaseModel):
    """Outcome of a batch insert through the Duplicate Guard."""

    saved: list[Transaction] = Field(default_factory=list)
    duplicates: list[str] = Field(
        default_factory=list,
        description="Labels of candidates suppressed as duplicates"
    )
    rejected: list[ValidationIssue] = Field(
        default_factory=list,
        description="Candidates that failed validation"
    )


class CategoryTotal(BaseModel):
    category: Category
    total: float


class StatsResult(BaseModel):
    """Totals for one filtered snapshot of the ledger."""

    date_range: DateRange
    category: Optional[Category] = None
    total_expense: float = 0.0
    total_income: float = 0.0
    breakdown: list[CategoryTotal] = Field(
        default_factory=list,
        description="Expense totals per category, largest first"
    )
    count: int = 0

    @property
    def balance(self) -> float:
        return self.total_income - self.total_expense


class TopExpenseResult(BaseModel):
    top_category: Optional[CategoryTotal] = None
    top_item: Optional[Transaction] = None


class TransactionPage(BaseModel):
    """One page of a search listing."""

    items: list[Transaction]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


class MutationResult(BaseModel):
    """Outcome of a single-record DELETE or UPDATE."""

    action: MutationAction
    transaction: Transaction = Field(
        ...,
        description="The deleted record, or the record after the update"
    )
    description: str
