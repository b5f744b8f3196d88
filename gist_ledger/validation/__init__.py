"""Validation package."""

from gist_ledger.validation.validator import (
    LedgerItemValidator,
    ValidationError,
    ValidationIssue,
    coerce_amount,
    is_storable_amount,
    new_item_id,
)

__all__ = [
    "LedgerItemValidator",
    "ValidationError",
    "ValidationIssue",
    "coerce_amount",
    "is_storable_amount",
    "new_item_id",
]
