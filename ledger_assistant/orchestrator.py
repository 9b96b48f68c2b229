"""
Main Orchestrator for Ledger Assistant

This module ties together all the components and defines the
end-to-end flow for one inbound message:

    message -> dedup cache -> intent parser -> dispatch -> reply

DESIGN DECISION: The orchestrator is the error boundary:
- ValidationError, NotFoundError and AmbiguousReferenceError become
  specific replies
- Anything else becomes a generic failure reply plus a system_error
  audit event; it never propagates into another request
- Every step is audited under one correlation id

Dispatch is a match over the closed Intent union ending in
assert_never, so a new intent kind cannot be silently unhandled.
"""

from datetime import datetime
from typing import Callable, Optional, assert_never
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from ledger_assistant.agents import GeminiIntentAgent, IntentParserInterface
from ledger_assistant.audit import AuditLogger, create_correlation_id
from ledger_assistant.budgets import BudgetMonitor
from ledger_assistant.cache import EventCache, TTLEventCache
from ledger_assistant.ledger import (
    AmbiguousReferenceError,
    LedgerWriter,
    MatchDescriptor,
    MutationExecutor,
    RangeEraser,
    TransactionMatcher,
)
from ledger_assistant.models.intent import (
    BulkDeleteIntent,
    CheckBudgetIntent,
    DeleteIntent,
    Intent,
    ListIntent,
    ModifyIntent,
    QueryIntent,
    RecordIntent,
    SetBudgetIntent,
    TargetedIntent,
    TopExpenseIntent,
    UnknownIntent,
)
from ledger_assistant.models.ledger import (
    CategoryTotal,
    MutationAction,
    TransactionKind,
    utc_now,
)
from ledger_assistant.queries import StatsAggregator
from ledger_assistant.replies import (
    GENERIC_FAILURE,
    HELP_TEXT,
    UNREADABLE_IMAGE,
    render_ambiguity,
    render_budget_set,
    render_budget_status,
    render_create_result,
    render_erase,
    render_mutation,
    render_stats,
    render_top_expense,
    render_transaction_list,
)
from ledger_assistant.reports import WeeklyReporter
from ledger_assistant.services.image import ReceiptImageError, ReceiptImagePreparer
from ledger_assistant.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStorageInterface,
    NotFoundError,
)
from ledger_assistant.validation import IntentValidator, ValidationError


logger = structlog.get_logger(__name__)


class AssistantReply(BaseModel):
    """What goes back to the user."""

    text: str
    breakdown: list[CategoryTotal] = Field(
        default_factory=list,
        description="Chart data for the boundary to render, when the reply has any"
    )


class LedgerAssistant:
    """
    Handles inbound messages for any number of owners.

    Each call is independent; there is no lock across owners or
    across one owner's messages. The store arbitrates record-level
    consistency.
    """

    def __init__(
        self,
        store: LedgerStorageInterface,
        parser: IntentParserInterface,
        audit_logger: Optional[AuditLogger] = None,
        event_cache: Optional[EventCache] = None,
        clock: Callable[[], datetime] = utc_now,
        image_preparer: Optional[ReceiptImagePreparer] = None,
    ):
        self._store = store
        self._parser = parser
        self._audit = audit_logger or AuditLogger()
        self._event_cache = event_cache or TTLEventCache()
        self._clock = clock
        self._image_preparer = image_preparer or ReceiptImagePreparer()

        self._validator = IntentValidator(clock)
        self._writer = LedgerWriter(store, clock)
        self._executor = MutationExecutor(store, TransactionMatcher(store))
        self._eraser = RangeEraser(store)
        self._stats = StatsAggregator(store)
        self._budgets = BudgetMonitor(store, clock)

    @property
    def stats(self) -> StatsAggregator:
        return self._stats

    @property
    def executor(self) -> MutationExecutor:
        return self._executor

    # -------------------------------------------------------------------------
    # Inbound messages
    # -------------------------------------------------------------------------

    async def _is_redelivery(
        self,
        owner: str,
        message_id: Optional[str],
        correlation_id: UUID,
    ) -> bool:
        if message_id is None:
            return False
        if self._event_cache.check_and_add(message_id):
            return False
        await self._audit.log_event_redelivered(owner, message_id, correlation_id)
        return True

    async def handle_text(
        self,
        owner: str,
        text: str,
        message_id: Optional[str] = None,
    ) -> Optional[AssistantReply]:
        """
        Process one text message.

        Returns:
            The reply, or None when ``message_id`` was already processed
        """
        correlation_id = create_correlation_id()
        if await self._is_redelivery(owner, message_id, correlation_id):
            return None

        try:
            intent = await self._parser.parse_text(text, self._clock())
        except Exception as e:
            await self._audit.log_external_service_error(
                service="intent_parser",
                error_message=str(e),
                correlation_id=correlation_id,
                owner=owner,
            )
            return AssistantReply(text=GENERIC_FAILURE)

        await self._audit.log_intent_parsed(owner, intent.kind, "text", correlation_id)
        return await self.handle_intent(owner, intent, correlation_id)

    async def handle_image(
        self,
        owner: str,
        image_bytes: bytes,
        mime_type: str,
        message_id: Optional[str] = None,
    ) -> Optional[AssistantReply]:
        """
        Process one receipt photo. Only RECORD intents are acted on.

        Returns:
            The reply, or None when ``message_id`` was already processed
        """
        correlation_id = create_correlation_id()
        if await self._is_redelivery(owner, message_id, correlation_id):
            return None

        try:
            prepared = self._image_preparer.prepare(image_bytes)
        except ReceiptImageError as e:
            return AssistantReply(text=str(e))

        try:
            intent = await self._parser.parse_image(prepared.data, prepared.mime_type, self._clock())
        except Exception as e:
            await self._audit.log_external_service_error(
                service="intent_parser",
                error_message=str(e),
                correlation_id=correlation_id,
                owner=owner,
            )
            return AssistantReply(text=GENERIC_FAILURE)

        await self._audit.log_intent_parsed(owner, intent.kind, "image", correlation_id)
        if not isinstance(intent, RecordIntent):
            logger.info("Receipt image did not yield a record", owner=owner, kind=intent.kind)
            return AssistantReply(text=UNREADABLE_IMAGE)
        return await self.handle_intent(owner, intent, correlation_id)

    async def handle_intent(
        self,
        owner: str,
        intent: Intent,
        correlation_id: Optional[UUID] = None,
    ) -> AssistantReply:
        """Execute an already-parsed intent and map any failure to a reply."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._dispatch(owner, intent, correlation_id)
        except ValidationError as e:
            logger.info("Request rejected", owner=owner, field=e.field, reason=e.message)
            return AssistantReply(text=e.message)
        except NotFoundError as e:
            return AssistantReply(text=str(e))
        except AmbiguousReferenceError as e:
            await self._audit.log_ambiguous_reference(
                owner, e.selector.value, len(e.candidates), correlation_id
            )
            return AssistantReply(text=render_ambiguity(e))
        except Exception as e:
            logger.exception("Intent handling failed", owner=owner, kind=intent.kind)
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"kind": intent.kind},
                owner=owner,
                correlation_id=correlation_id,
            )
            return AssistantReply(text=GENERIC_FAILURE)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def _dispatch(self, owner: str, intent: Intent, cid: UUID) -> AssistantReply:
        match intent:
            case RecordIntent():
                return await self._record(owner, intent, cid)
            case QueryIntent():
                return await self._query(owner, intent, cid)
            case ListIntent():
                return await self._list(owner, intent, cid)
            case TopExpenseIntent():
                return await self._top_expense(owner, intent, cid)
            case DeleteIntent() | ModifyIntent():
                return await self._modify(owner, intent, cid)
            case BulkDeleteIntent():
                return await self._bulk_delete(owner, intent, cid)
            case SetBudgetIntent():
                return await self._set_budget(owner, intent, cid)
            case CheckBudgetIntent():
                return await self._check_budget(owner)
            case UnknownIntent():
                return AssistantReply(text=HELP_TEXT)
            case _:
                assert_never(intent)

    async def _record(self, owner: str, intent: RecordIntent, cid: UUID) -> AssistantReply:
        batch = self._validator.validate_record(intent)
        if batch.date_fallbacks:
            await self._audit.log_date_fallback(owner, batch.date_fallbacks, cid)

        result = await self._writer.create_many(owner, batch.drafts, batch.issues)

        for tx in result.saved:
            await self._audit.log_transaction_saved(owner, tx.id, tx.label, cid)
        for label in result.duplicates:
            await self._audit.log_duplicate_suppressed(owner, label, cid)
        if result.rejected:
            await self._audit.log_record_rejected(owner, result.rejected, cid)

        # One alert check per distinct expense category that was saved
        alerts = []
        seen = set()
        for tx in result.saved:
            if tx.kind != TransactionKind.EXPENSE or tx.category in seen:
                continue
            seen.add(tx.category)
            alert = await self._budgets.check_alert(owner, tx.category)
            if alert is not None:
                alerts.append(alert)
                await self._audit.log_budget_alert(owner, alert, cid)

        return AssistantReply(text=render_create_result(result, alerts))

    async def _query(self, owner: str, intent: QueryIntent, cid: UUID) -> AssistantReply:
        date_range = self._validator.resolve_range(intent)
        category = self._validator.category_filter(intent.category)
        stats = await self._stats.compute_stats(owner, date_range, category)
        await self._audit.log_query_executed(owner, intent.kind, stats.count, cid)
        return AssistantReply(text=render_stats(stats), breakdown=stats.breakdown)

    async def _list(self, owner: str, intent: ListIntent, cid: UUID) -> AssistantReply:
        date_range = self._validator.resolve_range(intent)
        category = self._validator.category_filter(intent.category)
        transactions = await self._stats.get_transaction_list(owner, date_range, category)
        await self._audit.log_query_executed(owner, intent.kind, len(transactions), cid)
        return AssistantReply(text=render_transaction_list(transactions, date_range))

    async def _top_expense(self, owner: str, intent: TopExpenseIntent, cid: UUID) -> AssistantReply:
        date_range = self._validator.resolve_range(intent)
        category = self._validator.category_filter(intent.category)
        result = await self._stats.get_top_expense(owner, date_range, category)
        await self._audit.log_query_executed(
            owner, intent.kind, int(result.top_item is not None), cid
        )
        return AssistantReply(text=render_top_expense(result, date_range))

    async def _modify(self, owner: str, intent: TargetedIntent, cid: UUID) -> AssistantReply:
        descriptor = MatchDescriptor.from_intent(intent)
        patch = None
        if intent.action == MutationAction.UPDATE:
            patch = self._validator.build_patch(intent)

        result = await self._executor.modify(owner, descriptor, intent.action, patch)

        if result.action == MutationAction.DELETE:
            await self._audit.log_transaction_deleted(
                owner, result.transaction.id, result.transaction.label, cid
            )
        else:
            await self._audit.log_transaction_updated(
                owner, result.transaction.id, patch.model_dump(mode="json", exclude_none=True), cid
            )
        return AssistantReply(text=render_mutation(result))

    async def _bulk_delete(self, owner: str, intent: BulkDeleteIntent, cid: UUID) -> AssistantReply:
        start, end = self._validator.resolve_erase_bounds(intent)
        deleted = await self._eraser.erase_range(owner, start, end)
        await self._audit.log_range_erased(owner, start, end, deleted, cid)
        return AssistantReply(text=render_erase(deleted, start, end))

    async def _set_budget(self, owner: str, intent: SetBudgetIntent, cid: UUID) -> AssistantReply:
        category, amount = self._validator.validate_budget(intent)
        budget = await self._budgets.set_budget(owner, category, amount)
        await self._audit.log_budget_set(owner, category.value, amount, cid)
        return AssistantReply(text=render_budget_set(budget))

    async def _check_budget(self, owner: str) -> AssistantReply:
        statuses = await self._budgets.get_budget_status(owner)
        if not statuses:
            raise NotFoundError(
                "You haven't set any budgets yet. Try \"set food budget 3000\"."
            )
        return AssistantReply(text=render_budget_status(statuses))


def create_app_components(
    use_storage: bool = True,
    parser: Optional[IntentParserInterface] = None,
) -> tuple[LedgerAssistant, WeeklyReporter, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to the in-memory store when False or
                    when Sheets is not configured.
        parser: Intent parser; defaults to Gemini

    Returns:
        (assistant, weekly_reporter, sheets_client)
    """
    sheets_client = None
    store: LedgerStorageInterface
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsLedgerStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("Storage not configured, using in-memory ledger", error=str(e))
            sheets_client = None
            store = InMemoryLedgerStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger()  # Local-only logging

    assistant = LedgerAssistant(
        store=store,
        parser=parser or GeminiIntentAgent(),
        audit_logger=audit_logger,
    )
    reporter = WeeklyReporter(store)

    return assistant, reporter, sheets_client
