"""Query and statistics package."""

from gist_ledger.queries.aggregation import (
    AggregationEngine,
    format_amount,
    shift_month,
)
from gist_ledger.queries.executor import HistoryCursor, QueryEngine

__all__ = [
    "AggregationEngine",
    "HistoryCursor",
    "QueryEngine",
    "format_amount",
    "shift_month",
]
