"""
Transaction Matcher

Users refer to earlier records in words: "delete the lunch one",
"the $150 one", "undo". There is no stable handle, so the reference is
resolved against the owner's history.

A descriptor carries at most one effective selector, in strict priority:
1. target_item   - case-insensitive substring of the item label
2. target_amount - exact amount
3. index_offset  - position in creation order, 0 = most recent

Content selectors (item, amount) look at the newest matches only and
can be ambiguous. Positional selection picks exactly one slot and so
never is: it yields a single match or nothing.
"""

from enum import Enum
from typing import Literal, Optional, Union

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ledger_assistant.config import get_settings
from ledger_assistant.models.intent import TargetedIntent
from ledger_assistant.models.ledger import (
    SortOrder,
    Transaction,
    TransactionFilter,
)
from ledger_assistant.services.storage.interface import LedgerStorageInterface
from ledger_assistant.validation.validator import ValidationError


logger = structlog.get_logger(__name__)


class Selector(str, Enum):
    """Which part of the descriptor drove the resolution."""
    ITEM = "item"
    AMOUNT = "amount"
    POSITION = "position"


class MatchDescriptor(BaseModel):
    """Identifies the transaction a DELETE or MODIFY refers to."""

    target_item: Optional[str] = Field(default=None, min_length=1)
    target_amount: Optional[float] = Field(default=None, gt=0)
    index_offset: int = Field(default=0, ge=0)

    @property
    def selector(self) -> Selector:
        if self.target_item:
            return Selector.ITEM
        if self.target_amount is not None:
            return Selector.AMOUNT
        return Selector.POSITION

    @classmethod
    def from_intent(cls, intent: TargetedIntent) -> "MatchDescriptor":
        """
        Build a descriptor from DELETE/MODIFY parameters.

        Raises:
            ValidationError: Negative offset or non-positive amount
        """
        try:
            return cls(
                target_item=(intent.target_item or "").strip() or None,
                target_amount=intent.target_amount,
                index_offset=intent.index_offset or 0,
            )
        except PydanticValidationError as e:
            field = str(e.errors()[0]["loc"][0])
            if field == "index_offset":
                raise ValidationError("indexOffset", "Position must be zero or positive")
            raise ValidationError("targetAmount", "The amount to look for must be greater than zero")


class SingleMatch(BaseModel):
    kind: Literal["single"] = "single"
    selector: Selector
    transaction: Transaction


class AmbiguousMatch(BaseModel):
    kind: Literal["ambiguous"] = "ambiguous"
    selector: Selector
    candidates: list[Transaction] = Field(
        ...,
        description="Newest matches first; at most the display limit"
    )


class NoMatch(BaseModel):
    kind: Literal["none"] = "none"
    selector: Selector


MatchOutcome = Union[SingleMatch, AmbiguousMatch, NoMatch]


class AmbiguousReferenceError(Exception):
    """
    A content-based reference matched several records.

    Not a failure: the caller re-prompts with the candidates.
    """

    def __init__(self, selector: Selector, candidates: list[Transaction]):
        super().__init__(f"Reference by {selector.value} matched {len(candidates)} records")
        self.selector = selector
        self.candidates = candidates


class TransactionMatcher:
    """
    Resolves a MatchDescriptor against one owner's transactions.

    Args:
        store: Ledger store
        candidate_limit: Newest content matches considered (default 10)
        display_limit: Candidates returned on ambiguity (default 5)
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        candidate_limit: Optional[int] = None,
        display_limit: Optional[int] = None,
    ):
        settings = get_settings().app
        self._store = store
        self._candidate_limit = candidate_limit or settings.match_candidate_limit
        self._display_limit = display_limit or settings.ambiguity_display_limit

    async def _by_content(
        self,
        query: TransactionFilter,
        selector: Selector,
    ) -> MatchOutcome:
        matches = await self._store.find_transactions(
            query,
            order=SortOrder.NEWEST_CREATED,
            limit=self._candidate_limit,
        )
        if not matches:
            return NoMatch(selector=selector)
        if len(matches) == 1:
            return SingleMatch(selector=selector, transaction=matches[0])
        return AmbiguousMatch(
            selector=selector,
            candidates=matches[: self._display_limit],
        )

    async def _by_position(self, owner: str, offset: int) -> MatchOutcome:
        found = await self._store.find_transactions(
            TransactionFilter(owner=owner),
            order=SortOrder.NEWEST_CREATED,
            limit=1,
            offset=offset,
        )
        if not found:
            return NoMatch(selector=Selector.POSITION)
        return SingleMatch(selector=Selector.POSITION, transaction=found[0])

    async def resolve(self, owner: str, descriptor: MatchDescriptor) -> MatchOutcome:
        """Resolve a descriptor into a single match, several candidates, or nothing."""
        selector = descriptor.selector

        if selector == Selector.ITEM:
            outcome = await self._by_content(
                TransactionFilter(owner=owner, item_contains=descriptor.target_item),
                selector,
            )
        elif selector == Selector.AMOUNT:
            outcome = await self._by_content(
                TransactionFilter(owner=owner, amount=descriptor.target_amount),
                selector,
            )
        else:
            outcome = await self._by_position(owner, descriptor.index_offset)

        logger.debug(
            "Reference resolved",
            owner=owner,
            selector=selector.value,
            outcome=outcome.kind,
        )
        return outcome
