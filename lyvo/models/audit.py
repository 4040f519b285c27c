"""
Audit Models for Lyvo

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every ledger mutation
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutation of the entry store and every step of the chat flow
    has its own event type.
    """
    # Ledger mutations
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    FIXED_BILL_ADDED = "fixed_bill_added"
    FIXED_BILL_TOGGLED = "fixed_bill_toggled"
    FIXED_BILL_DELETED = "fixed_bill_deleted"
    FORECAST_ADDED = "forecast_added"
    FORECAST_UPDATED = "forecast_updated"
    FORECAST_CONFIRMED = "forecast_confirmed"
    FORECAST_DELETED = "forecast_deleted"
    CARD_ADDED = "card_added"
    CARD_UPDATED = "card_updated"
    CARD_DELETED = "card_deleted"
    INVOICE_PAID = "invoice_paid"
    INVOICE_RESIDUAL_ROLLED = "invoice_residual_rolled"
    BUDGET_LIMIT_SET = "budget_limit_set"

    # Agenda
    EVENT_ADDED = "event_added"
    EVENT_DELETED = "event_deleted"

    # Chat flow
    INTENT_CLASSIFIED = "intent_classified"
    INTENT_REJECTED = "intent_rejected"
    USER_CONFIRMED = "user_confirmed"
    USER_CANCELLED = "user_cancelled"
    QUERY_EXECUTED = "query_executed"

    # Persistence / access
    LEDGER_SAVED = "ledger_saved"
    LEDGER_LOADED = "ledger_loaded"
    ACCESS_CHECKED = "access_checked"

    # System events
    VALIDATION_FAILED = "validation_failed"
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

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'card', 'intent')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one chat turn)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
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
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
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
        event = AuditEventBuilder.transaction_added(tx, correlation_id)
        event = AuditEventBuilder.invoice_paid(card_id, month, amount, fully_paid)
    """

    @staticmethod
    def transaction_added(
        transaction_id: UUID,
        description: str,
        amount: str,
        card_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {description} - R${amount}",
            details={
                "amount": amount,
                "card_id": str(card_id) if card_id else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def invoice_paid(
        card_id: UUID,
        month: str,
        amount: str,
        fully_paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_PAID,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=(
                f"Invoice {month} {'settled' if fully_paid else 'partially paid'}: R${amount}"
            ),
            details={
                "month": month,
                "amount": amount,
                "fully_paid": fully_paid,
            },
            is_user_action=True,
        )

    @staticmethod
    def residual_rolled(
        card_id: UUID,
        from_month: str,
        to_month: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_RESIDUAL_ROLLED,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Residual of R${amount} rolled from {from_month} to {to_month}",
            details={
                "from_month": from_month,
                "to_month": to_month,
                "amount": amount,
            },
        )

    @staticmethod
    def fixed_bill_toggled(
        bill_id: UUID,
        month: str,
        paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_BILL_TOGGLED,
            entity_type="fixed_bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Fixed bill marked {'paid' if paid else 'unpaid'} for {month}",
            details={"month": month, "paid": paid},
            is_user_action=True,
        )

    @staticmethod
    def forecast_confirmed(
        forecast_id: UUID,
        month: str,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORECAST_CONFIRMED,
            entity_type="forecast",
            entity_id=forecast_id,
            correlation_id=correlation_id,
            description=f"Forecast confirmed for {month}",
            details={"month": month, "transaction_id": str(transaction_id)},
            is_user_action=True,
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Generic add/update/delete of a ledger or agenda entity."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def intent_classified(
        intent_id: UUID,
        action: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTENT_CLASSIFIED,
            entity_type="intent",
            entity_id=intent_id,
            correlation_id=correlation_id,
            description=f"Chat message classified as {action}",
            details={"action": action},
        )

    @staticmethod
    def intent_rejected(
        issues: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="intent",
            correlation_id=correlation_id,
            description=f"Classifier payload rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def user_confirmed(
        intent_id: UUID,
        action: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="intent",
            entity_id=intent_id,
            correlation_id=correlation_id,
            description=f"User confirmed {action}",
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def user_cancelled(
        intent_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CANCELLED,
            entity_type="intent",
            entity_id=intent_id,
            correlation_id=correlation_id,
            description="User discarded the proposed entry",
            is_user_action=True,
        )

    @staticmethod
    def query_executed(
        query_id: UUID,
        query_type: str,
        result_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            entity_type="query",
            entity_id=query_id,
            correlation_id=correlation_id,
            description=f"Query executed: {query_type} returned {result_count} results",
            details={
                "query_type": query_type,
                "result_count": result_count,
            },
        )

    @staticmethod
    def ledger_persisted(
        saved: bool,
        counts: dict[str, int],
        uid: Optional[str] = None,
    ) -> AuditEvent:
        """A whole-ledger load (saved=False) or save (saved=True) for one user."""
        details = dict(counts)
        if uid is not None:
            details["uid"] = uid
        return AuditEvent(
            event_type=AuditEventType.LEDGER_SAVED if saved else AuditEventType.LEDGER_LOADED,
            entity_type="ledger",
            description=f"Ledger {'saved' if saved else 'loaded'}",
            details=details,
        )

    @staticmethod
    def access_checked(
        uid: str,
        granted: bool,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_CHECKED,
            severity=AuditSeverity.INFO if granted else AuditSeverity.WARNING,
            entity_type="user",
            description=f"Access {'granted' if granted else 'denied'}: {reason}",
            details={"uid": uid, "granted": granted, "reason": reason},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected by the ledger",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
