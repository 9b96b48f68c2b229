"""
Data Models Package

This package contains all Pydantic models used in the Ledger Assistant.
All data flowing through the system must conform to these schemas.
"""

from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    BudgetStatus,
    Category,
    CategoryTotal,
    CreateResult,
    DateRange,
    MutationAction,
    MutationResult,
    SortOrder,
    StatsResult,
    TopExpenseResult,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionKind,
    TransactionPage,
    TransactionPatch,
    ValidationIssue,
    ensure_utc,
    format_amount,
    sort_transactions,
    utc_now,
)
from ledger_assistant.models.intent import (
    BulkDeleteIntent,
    CheckBudgetIntent,
    DeleteIntent,
    Intent,
    ListIntent,
    ModifyIntent,
    QueryIntent,
    RecordedItem,
    RecordIntent,
    SetBudgetIntent,
    TopExpenseIntent,
    UnknownIntent,
    parse_intent,
)
from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Budget",
    "BudgetCategory",
    "BudgetStatus",
    "Category",
    "CategoryTotal",
    "CreateResult",
    "DateRange",
    "MutationAction",
    "MutationResult",
    "SortOrder",
    "StatsResult",
    "TopExpenseResult",
    "Transaction",
    "TransactionDraft",
    "TransactionFilter",
    "TransactionKind",
    "TransactionPage",
    "TransactionPatch",
    "ValidationIssue",
    "ensure_utc",
    "format_amount",
    "sort_transactions",
    "utc_now",
    # Intent models
    "BulkDeleteIntent",
    "CheckBudgetIntent",
    "DeleteIntent",
    "Intent",
    "ListIntent",
    "ModifyIntent",
    "QueryIntent",
    "RecordedItem",
    "RecordIntent",
    "SetBudgetIntent",
    "TopExpenseIntent",
    "UnknownIntent",
    "parse_intent",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
