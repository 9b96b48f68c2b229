"""Validation package."""

from ledger_assistant.validation.validator import (
    IntentValidator,
    RecordBatch,
    ValidationError,
    parse_datetime,
)

__all__ = [
    "IntentValidator",
    "RecordBatch",
    "ValidationError",
    "parse_datetime",
]
