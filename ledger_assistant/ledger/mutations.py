"""
Mutation Executor and Range Eraser

Single-record changes go through MutationExecutor: exactly one resolved
record is deleted or partially updated. Bulk deletion goes through
RangeEraser, which has its own safety contract: both boundaries must be
explicit, it never treats a missing boundary as "everything".

Resolution and mutation are two store calls. A concurrent delete in
between surfaces as NotFoundError; it is reported, never retried.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from ledger_assistant.ledger.matcher import (
    AmbiguousMatch,
    AmbiguousReferenceError,
    MatchDescriptor,
    NoMatch,
    Selector,
    TransactionMatcher,
)
from ledger_assistant.models.ledger import (
    DateRange,
    MutationAction,
    MutationResult,
    Transaction,
    TransactionDraft,
    TransactionFilter,
    TransactionPatch,
    format_amount,
)
from ledger_assistant.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
)
from ledger_assistant.validation.validator import ValidationError


logger = structlog.get_logger(__name__)


def _no_match_message(descriptor: MatchDescriptor) -> str:
    if descriptor.selector == Selector.ITEM:
        return f"I couldn't find any transaction matching '{descriptor.target_item}'."
    if descriptor.selector == Selector.AMOUNT:
        return f"I couldn't find any transaction of ${format_amount(descriptor.target_amount)}."
    if descriptor.index_offset == 0:
        return "There are no transactions to change yet."
    return f"There is no transaction at position {descriptor.index_offset + 1}."


class MutationExecutor:
    """
    Applies DELETE or UPDATE to exactly one transaction.

    Args:
        store: Ledger store
        matcher: Resolves descriptors for the descriptor-based entry point
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        matcher: Optional[TransactionMatcher] = None,
    ):
        self._store = store
        self._matcher = matcher or TransactionMatcher(store)

    async def apply(
        self,
        owner: str,
        target: Transaction,
        action: MutationAction,
        patch: Optional[TransactionPatch] = None,
    ) -> MutationResult:
        """
        Mutate a resolved transaction.

        UPDATE applies only the fields present in ``patch``.

        Raises:
            ValidationError: UPDATE without any change
            NotFoundError: The record vanished after resolution
        """
        if action == MutationAction.DELETE:
            deleted = await self._store.delete_transaction(owner, target.id)
            if deleted is None:
                raise NotFoundError("That transaction no longer exists.")
            logger.info("Transaction deleted", owner=owner, transaction_id=str(deleted.id))
            return MutationResult(
                action=action,
                transaction=deleted,
                description=f"Deleted: {deleted.summary}",
            )

        if patch is None or patch.is_empty:
            raise ValidationError("patch", "Tell me what to change: the item, amount or category.")

        updated = await self._store.update_transaction(owner, target.id, patch.changes())
        if updated is None:
            raise NotFoundError("That transaction no longer exists.")
        logger.info(
            "Transaction updated",
            owner=owner,
            transaction_id=str(updated.id),
            fields=sorted(patch.changes()),
        )
        return MutationResult(
            action=action,
            transaction=updated,
            description=f"Updated to: {updated.summary}",
        )

    async def modify(
        self,
        owner: str,
        descriptor: MatchDescriptor,
        action: MutationAction,
        patch: Optional[TransactionPatch] = None,
    ) -> MutationResult:
        """
        Resolve a natural-language reference, then mutate it.

        Raises:
            ValidationError: UPDATE without any change
            NotFoundError: Nothing matched, or the match vanished
            AmbiguousReferenceError: Several records matched item or amount
        """
        if action == MutationAction.UPDATE and (patch is None or patch.is_empty):
            raise ValidationError("patch", "Tell me what to change: the item, amount or category.")

        outcome = await self._matcher.resolve(owner, descriptor)
        if isinstance(outcome, NoMatch):
            raise NotFoundError(_no_match_message(descriptor))
        if isinstance(outcome, AmbiguousMatch):
            raise AmbiguousReferenceError(outcome.selector, outcome.candidates)
        return await self.apply(owner, outcome.transaction, action, patch)

    async def edit_transaction(
        self,
        owner: str,
        transaction_id: UUID,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Replace every editable field of one transaction by id.

        Unlike the chat path, this can change occurrence date and kind.
        """
        updated = await self._store.update_transaction(
            owner,
            transaction_id,
            draft.model_dump(),
        )
        if updated is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        logger.info("Transaction edited", owner=owner, transaction_id=str(transaction_id))
        return updated

    async def delete_transaction(self, owner: str, transaction_id: UUID) -> Transaction:
        deleted = await self._store.delete_transaction(owner, transaction_id)
        if deleted is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        logger.info("Transaction deleted", owner=owner, transaction_id=str(transaction_id))
        return deleted


class RangeEraser:
    """Deletes every transaction of one owner in an explicit date range."""

    def __init__(self, store: LedgerStorageInterface):
        self._store = store

    async def erase_range(
        self,
        owner: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> int:
        """
        Delete the owner's records with occurrence date in [start, end].

        Raises:
            ValidationError: A boundary is missing or end precedes start.
                Nothing is deleted.

        Returns:
            Number of records deleted (may be 0)
        """
        if start is None or end is None:
            raise ValidationError(
                "startDate" if start is None else "endDate",
                "Bulk delete needs an explicit start and end date.",
            )
        if end < start:
            raise ValidationError("endDate", "The end date is before the start date.")

        deleted = await self._store.delete_transactions(
            TransactionFilter(owner=owner, date_range=DateRange(start=start, end=end))
        )
        logger.warning(
            "Range erased",
            owner=owner,
            start=start.isoformat(),
            end=end.isoformat(),
            deleted=deleted,
        )
        return deleted
