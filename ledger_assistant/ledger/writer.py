"""
Ledger Write Path (Duplicate Guard)

Chat transports deliver at least once and users resend messages, so an
identical record arriving twice in quick succession is almost always a
repeat, not a second purchase.

Duplicate policy:
- Same owner, item label, amount, category and kind (exact match,
  case-sensitive label)
- An existing record whose occurrence date falls in the trailing
  window (default 5 minutes) ending at the moment of insert

The check runs per candidate, so one duplicate never blocks its siblings
in the same batch. It is read-then-write and therefore best-effort: two
identical submissions racing each other can both be saved.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional

import structlog

from ledger_assistant.config import get_settings
from ledger_assistant.models.ledger import (
    CreateResult,
    DateRange,
    Transaction,
    TransactionDraft,
    ValidationIssue,
    utc_now,
)
from ledger_assistant.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class LedgerWriter:
    """
    Inserts transactions after clearing them through the Duplicate Guard.

    Args:
        store: Ledger store
        clock: Source of "now"; the duplicate window ends here
        window_seconds: Length of the duplicate window
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        clock: Callable[[], datetime] = utc_now,
        window_seconds: Optional[int] = None,
    ):
        self._store = store
        self._clock = clock
        self._window_seconds = (
            window_seconds
            if window_seconds is not None
            else get_settings().app.duplicate_window_seconds
        )

    async def find_duplicate(
        self,
        owner: str,
        candidate: TransactionDraft,
    ) -> Optional[Transaction]:
        window = DateRange.trailing(self._clock(), self._window_seconds)
        return await self._store.find_duplicate(owner, candidate, window)

    async def is_duplicate(self, owner: str, candidate: TransactionDraft) -> bool:
        """True when an equivalent record already exists in the window."""
        return await self.find_duplicate(owner, candidate) is not None

    async def create_many(
        self,
        owner: str,
        candidates: Iterable[TransactionDraft],
        rejected: Iterable[ValidationIssue] = (),
    ) -> CreateResult:
        """
        Save every candidate that is not a duplicate.

        Args:
            owner: Ledger owner
            candidates: Validated drafts, saved in order
            rejected: Validation issues to carry through to the result

        Returns:
            CreateResult with saved records, duplicate labels and rejections
        """
        result = CreateResult(rejected=list(rejected))

        for candidate in candidates:
            existing = await self.find_duplicate(owner, candidate)
            if existing is not None:
                logger.info(
                    "Duplicate suppressed",
                    owner=owner,
                    label=candidate.label,
                    existing_id=str(existing.id),
                )
                result.duplicates.append(candidate.label)
                continue

            transaction = Transaction.from_draft(owner, candidate, self._clock())
            saved = await self._store.save_transaction(transaction)
            result.saved.append(saved)

        logger.info(
            "Batch recorded",
            owner=owner,
            saved=len(result.saved),
            duplicates=len(result.duplicates),
            rejected=len(result.rejected),
        )
        return result
