"""
Ledger Item Validation

Turns raw user input (a LedgerItemDraft or a plain dict) into a
LedgerItem that satisfies the stored invariants:
- amount is a finite number; its absolute value is stored
- type is expense or income
- category is a non-empty string
- date is a calendar date

IMPORTANT: Validation runs BEFORE any optimistic change. A draft that
fails here never touches the in-memory ledger or the remote document.
"""

from decimal import Decimal
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from gist_ledger.models.ledger import LedgerItem, LedgerItemDraft


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationError(Exception):
    """An item failed validation; nothing was changed."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid ledger item: {summary}")

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


DraftInput = Union[LedgerItemDraft, LedgerItem, dict]


class LedgerItemValidator:
    """
    Validates drafts and builds storable LedgerItems.

    Only structural rules are enforced. Whether a category fits the
    transaction type is not checked; categories are free text.
    """

    def parse_draft(self, data: DraftInput) -> LedgerItemDraft:
        """Coerce input into a draft, reporting pydantic errors as issues."""
        if isinstance(data, LedgerItemDraft):
            return data
        if isinstance(data, LedgerItem):
            return LedgerItemDraft.from_item(data)

        try:
            return LedgerItemDraft.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError([
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "item",
                    issue_type=error["type"],
                    message=error["msg"],
                )
                for error in e.errors()
            ]) from e

    def _check(self, draft: LedgerItemDraft) -> list[ValidationIssue]:
        issues = []

        if not draft.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
            ))
        elif not is_storable_amount(abs(draft.amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_precision",
                message="Amount has more precision than the ledger can store",
            ))

        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
            ))
        elif len(draft.category) > 100:
            issues.append(ValidationIssue(
                field="category",
                issue_type="too_long",
                message="Category must be at most 100 characters",
            ))

        if draft.remark and len(draft.remark) > 500:
            issues.append(ValidationIssue(
                field="remark",
                issue_type="too_long",
                message="Remark must be at most 500 characters",
            ))

        return issues

    def build_item(
        self,
        data: DraftInput,
        item_id: Optional[str] = None,
    ) -> LedgerItem:
        """
        Validate input and produce the item to store.

        Args:
            data: Draft, existing item or dict of fields
            item_id: Id to assign; falls back to the draft's id, then
                     to a fresh uuid4

        Raises:
            ValidationError: With every issue found
        """
        draft = self.parse_draft(data)

        issues = self._check(draft)
        if issues:
            raise ValidationError(issues)

        return LedgerItem(
            id=item_id or draft.id or new_item_id(),
            date=draft.date,
            amount=abs(draft.amount),
            category=draft.category,
            remark=draft.remark or None,
            type=draft.type,
        )


def new_item_id() -> str:
    return str(uuid4())


def is_storable_amount(amount: Decimal) -> bool:
    """
    Does the amount survive the stored JSON form unchanged?

    Whole numbers are written as JSON integers. Anything else is written
    as a double, so it must convert to one exactly.
    """
    if amount == amount.to_integral_value():
        return True
    return Decimal(repr(float(amount))) == amount


def coerce_amount(value: Any) -> Decimal:
    """
    Parse a user-typed amount ("12.5", "-3", 7) into a Decimal.

    Raises:
        ValidationError: If the value is not a number
    """
    try:
        amount = Decimal(str(value).strip())
    except ArithmeticError as e:
        raise ValidationError([ValidationIssue(
            field="amount",
            issue_type="invalid_number",
            message=f"Not a number: {value!r}",
        )]) from e
    if not amount.is_finite():
        raise ValidationError([ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount must be a finite number",
        )])
    return amount
