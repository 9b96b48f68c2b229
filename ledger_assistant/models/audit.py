"""
Audit Models for Ledger Assistant

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every ledger mutation
2. Debugging information when things go wrong
3. Ability to reconstruct what happened to a record

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_assistant.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Inbound
    INTENT_PARSED = "intent_parsed"
    EVENT_REDELIVERED = "event_redelivered"

    # Ledger writes
    TRANSACTION_SAVED = "transaction_saved"
    DUPLICATE_SUPPRESSED = "duplicate_suppressed"
    RECORD_REJECTED = "record_rejected"
    DATE_FALLBACK = "date_fallback"

    # Mutations
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    AMBIGUOUS_REFERENCE = "ambiguous_reference"
    RANGE_ERASED = "range_erased"

    # Budgets
    BUDGET_SET = "budget_set"
    BUDGET_ALERT = "budget_alert"

    # Queries
    QUERY_EXECUTED = "query_executed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    owner: Optional[str] = Field(
        default=None,
        description="Ledger owner the event concerns"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'budget', 'event')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events produced by one inbound message
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner": self.owner,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_saved(owner, tx_id, label, correlation_id)
    """

    @staticmethod
    def intent_parsed(
        owner: str,
        kind: str,
        source: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTENT_PARSED,
            owner=owner,
            entity_type="intent",
            correlation_id=correlation_id,
            description=f"Parsed {source} message as {kind}",
            details={"kind": kind, "source": source},
            is_user_action=True,
        )

    @staticmethod
    def event_redelivered(
        owner: str,
        message_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_REDELIVERED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="event",
            correlation_id=correlation_id,
            description="Inbound message already processed, ignoring redelivery",
            details={"message_id": message_id},
        )

    @staticmethod
    def transaction_saved(
        owner: str,
        transaction_id: UUID,
        label: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            owner=owner,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {label}",
            details={"label": label},
        )

    @staticmethod
    def duplicate_suppressed(
        owner: str,
        label: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SUPPRESSED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Duplicate suppressed: {label}",
            details={"label": label},
        )

    @staticmethod
    def record_rejected(
        owner: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REJECTED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{len(issues)} record(s) rejected by validation",
            details={"issues": issues},
        )

    @staticmethod
    def date_fallback(
        owner: str,
        labels: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATE_FALLBACK,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Unparsable date on {len(labels)} record(s), used current time",
            details={"labels": labels},
        )

    @staticmethod
    def transaction_updated(
        owner: str,
        transaction_id: UUID,
        changes: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            owner=owner,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction updated",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        owner: str,
        transaction_id: UUID,
        label: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner=owner,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted: {label}",
            details={"label": label},
            is_user_action=True,
        )

    @staticmethod
    def ambiguous_reference(
        owner: str,
        selector: str,
        candidate_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AMBIGUOUS_REFERENCE,
            owner=owner,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Reference by {selector} matched {candidate_count} records",
            details={"selector": selector, "candidate_count": candidate_count},
        )

    @staticmethod
    def range_erased(
        owner: str,
        start: datetime,
        end: datetime,
        deleted_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RANGE_ERASED,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Bulk delete removed {deleted_count} transaction(s)",
            details={
                "start": start.isoformat(),
                "end": end.isoformat(),
                "deleted_count": deleted_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_set(
        owner: str,
        category: str,
        amount: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            owner=owner,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget set: {category} = {amount}",
            details={"category": category, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budget_alert(
        owner: str,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_ALERT,
            severity=AuditSeverity.WARNING,
            owner=owner,
            entity_type="budget",
            correlation_id=correlation_id,
            description="Budget alert raised",
            details={"message": message},
        )

    @staticmethod
    def query_executed(
        owner: str,
        kind: str,
        result_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            owner=owner,
            entity_type="query",
            correlation_id=correlation_id,
            description=f"Query executed: {kind} covered {result_count} records",
            details={"kind": kind, "result_count": result_count},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        owner: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner=owner,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID,
        owner: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            owner=owner,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
