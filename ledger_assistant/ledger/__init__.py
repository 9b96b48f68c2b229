"""Ledger write, resolution and mutation package."""

from ledger_assistant.ledger.writer import LedgerWriter
from ledger_assistant.ledger.matcher import (
    AmbiguousMatch,
    AmbiguousReferenceError,
    MatchDescriptor,
    MatchOutcome,
    NoMatch,
    Selector,
    SingleMatch,
    TransactionMatcher,
)
from ledger_assistant.ledger.mutations import MutationExecutor, RangeEraser

__all__ = [
    "AmbiguousMatch",
    "AmbiguousReferenceError",
    "LedgerWriter",
    "MatchDescriptor",
    "MatchOutcome",
    "MutationExecutor",
    "NoMatch",
    "RangeEraser",
    "Selector",
    "SingleMatch",
    "TransactionMatcher",
]
