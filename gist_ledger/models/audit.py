"""
Audit Models for Gist Ledger

Every session transition and every ledger mutation produces an audit
event. Events are written to the structured log and kept in a bounded
in-memory history, so the outcome of each optimistic edit (confirmed or
rolled back) can be traced after the fact.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session lifecycle
    SESSION_CONNECTED = "session_connected"
    SESSION_RESUMED = "session_resumed"
    SESSION_RESUME_FAILED = "session_resume_failed"
    SESSION_LOGGED_OUT = "session_logged_out"

    # Document
    DOCUMENT_RESOLVED = "document_resolved"
    DOCUMENT_CREATED = "document_created"
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_PARSE_FAILED = "ledger_parse_failed"

    # Mutations
    ITEM_ADDED = "item_added"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    WRITE_CONFIRMED = "write_confirmed"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"
    MUTATION_REJECTED = "mutation_rejected"
    VALIDATION_FAILED = "validation_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
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
        description="Type of entity (e.g., 'item', 'document', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one mutation or session flow"
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
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


_MUTATION_EVENTS = {
    "add": AuditEventType.ITEM_ADDED,
    "update": AuditEventType.ITEM_UPDATED,
    "delete": AuditEventType.ITEM_DELETED,
}


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.mutation_applied("add", item_id, correlation_id)
        event = AuditEventBuilder.mutation_rolled_back("add", item_id, error, correlation_id)
    """

    @staticmethod
    def session_connected(login: str, document_handle: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CONNECTED,
            entity_type="session",
            entity_id=document_handle,
            description=f"Connected as {login}",
            details={"login": login},
            is_user_action=True,
        )

    @staticmethod
    def session_resumed(document_handle: str, item_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESUMED,
            entity_type="session",
            entity_id=document_handle,
            description=f"Session resumed with {item_count} items",
            details={"item_count": item_count},
        )

    @staticmethod
    def session_resume_failed(error: Exception) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESUME_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            description="Stored session could not be resumed; credentials cleared",
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def session_logged_out() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_LOGGED_OUT,
            entity_type="session",
            description="Logged out; credentials cleared",
            is_user_action=True,
        )

    @staticmethod
    def document_resolved(document_handle: str, created: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.DOCUMENT_CREATED
                if created
                else AuditEventType.DOCUMENT_RESOLVED
            ),
            entity_type="document",
            entity_id=document_handle,
            description=(
                "Ledger document created" if created else "Ledger document found"
            ),
        )

    @staticmethod
    def ledger_loaded(document_handle: str, item_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="document",
            entity_id=document_handle,
            description=f"Ledger loaded: {item_count} items",
            details={"item_count": item_count},
        )

    @staticmethod
    def ledger_parse_failed(document_handle: str, error: Exception) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_PARSE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_handle,
            description="Stored ledger is unreadable; session opened read-only",
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def mutation_applied(
        kind: str,
        item_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=_MUTATION_EVENTS[kind],
            entity_type="item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"Optimistic {kind} applied",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def write_confirmed(
        kind: str,
        item_id: str,
        item_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_CONFIRMED,
            entity_type="item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"Ledger written after {kind} ({item_count} items)",
            details={"kind": kind, "item_count": item_count},
        )

    @staticmethod
    def mutation_rolled_back(
        kind: str,
        item_id: str,
        error: Exception,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            entity_type="item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=f"Write failed; {kind} rolled back",
            details={"kind": kind},
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def mutation_rejected(kind: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="item",
            description=f"{kind.capitalize()} rejected: {reason}",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(kind: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="item",
            description=f"{kind.capitalize()} failed validation with {len(issues)} issues",
            details={"kind": kind, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_type=type(error).__name__,
            error_message=str(error),
            details={"service": service},
            correlation_id=correlation_id,
        )
