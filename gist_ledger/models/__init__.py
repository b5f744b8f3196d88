"""Data models package."""

from gist_ledger.models.ledger import (
    CATEGORY_SUGGESTIONS,
    LedgerItem,
    LedgerItemDraft,
    LedgerSet,
    TransactionType,
    default_category,
)
from gist_ledger.models.views import (
    FilterType,
    LedgerFilter,
    LedgerPage,
    PeriodTotals,
    StatisticsReport,
    YearTrend,
)
from gist_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CATEGORY_SUGGESTIONS",
    "LedgerItem",
    "LedgerItemDraft",
    "LedgerSet",
    "TransactionType",
    "default_category",
    # View models
    "FilterType",
    "LedgerFilter",
    "LedgerPage",
    "PeriodTotals",
    "StatisticsReport",
    "YearTrend",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
