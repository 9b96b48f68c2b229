"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of ledger changes
2. Debugging capability
3. A history the owner can inspect in the AuditLog sheet

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't fail the request if logging fails)
- Supports correlation IDs to trace all events of one inbound message
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger_assistant.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger_assistant.models.ledger import ValidationIssue
from ledger_assistant.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_intent_parsed(
        self,
        owner: str,
        kind: str,
        source: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.intent_parsed(owner, kind, source, correlation_id))

    async def log_event_redelivered(
        self,
        owner: str,
        message_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.event_redelivered(owner, message_id, correlation_id))

    async def log_transaction_saved(
        self,
        owner: str,
        transaction_id: UUID,
        label: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.transaction_saved(owner, transaction_id, label, correlation_id)
        )

    async def log_duplicate_suppressed(
        self,
        owner: str,
        label: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_suppressed(owner, label, correlation_id))

    async def log_record_rejected(
        self,
        owner: str,
        issues: list[ValidationIssue],
        correlation_id: UUID,
    ) -> None:
        """Log items dropped from a RECORD batch by validation."""
        await self.log(AuditEventBuilder.record_rejected(
            owner,
            [issue.model_dump() for issue in issues],
            correlation_id,
        ))

    async def log_date_fallback(
        self,
        owner: str,
        labels: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.date_fallback(owner, labels, correlation_id))

    async def log_transaction_updated(
        self,
        owner: str,
        transaction_id: UUID,
        changes: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.transaction_updated(owner, transaction_id, changes, correlation_id)
        )

    async def log_transaction_deleted(
        self,
        owner: str,
        transaction_id: UUID,
        label: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.transaction_deleted(owner, transaction_id, label, correlation_id)
        )

    async def log_ambiguous_reference(
        self,
        owner: str,
        selector: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.ambiguous_reference(owner, selector, candidate_count, correlation_id)
        )

    async def log_range_erased(
        self,
        owner: str,
        start: datetime,
        end: datetime,
        deleted_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.range_erased(owner, start, end, deleted_count, correlation_id)
        )

    async def log_budget_set(
        self,
        owner: str,
        category: str,
        amount: float,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_set(owner, category, amount, correlation_id))

    async def log_budget_alert(
        self,
        owner: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_alert(owner, message, correlation_id))

    async def log_query_executed(
        self,
        owner: str,
        kind: str,
        result_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log query execution."""
        await self.log(
            AuditEventBuilder.query_executed(owner, kind, result_count, correlation_id)
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            owner=owner,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
        owner: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
            owner=owner,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this when an inbound message arrives.
    Pass it through all subsequent operations.
    """
    return uuid4()
