"""
Audit Logger

Every session transition and mutation outcome is logged as a structured
event. The logger:
- Writes JSON lines through structlog
- Keeps a bounded in-memory history for inspection
- Is synchronous; mutations log without awaiting anything
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from gist_ledger.config import get_settings
from gist_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


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

# filter_by_level defers to the stdlib logger, so the package level gates output
logging.getLogger("gist_ledger").setLevel(get_settings().app.log_level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log
    2. An in-memory ring buffer (recent_events)
    """

    def __init__(self, history_size: Optional[int] = None):
        """
        Initialize audit logger.

        Args:
            history_size: How many events to keep in memory.
                          Defaults to AppSettings.audit_history_size.
        """
        if history_size is None:
            history_size = get_settings().app.audit_history_size
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("gist_ledger.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at its own severity."""
        self._history.append(event)

        log_dict = event.to_log_dict()
        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def recent_events(
        self,
        limit: int = 100,
        event_type: Optional[AuditEventType] = None,
    ) -> list[AuditEvent]:
        """Most recent events first."""
        events = [
            event for event in reversed(self._history)
            if event_type is None or event.event_type == event_type
        ]
        return events[:limit]

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        """Events of one flow in chronological order."""
        return [e for e in self._history if e.correlation_id == correlation_id]

    # -------------------------------------------------------------------------
    # Convenience wrappers
    # -------------------------------------------------------------------------

    def log_mutation_applied(self, kind: str, item_id: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.mutation_applied(kind, item_id, correlation_id))

    def log_write_confirmed(
        self,
        kind: str,
        item_id: str,
        item_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.write_confirmed(kind, item_id, item_count, correlation_id))

    def log_mutation_rolled_back(
        self,
        kind: str,
        item_id: str,
        error: Exception,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.mutation_rolled_back(kind, item_id, error, correlation_id))

    def log_mutation_rejected(self, kind: str, reason: str) -> None:
        self.log(AuditEventBuilder.mutation_rejected(kind, reason))

    def log_validation_failed(self, kind: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.validation_failed(kind, issues))

    def log_external_service_error(
        self,
        service: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.external_service_error(service, error, correlation_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per mutation or per session flow.
    """
    return uuid4()
