"""
Core Ledger Models for Gist Ledger

LedgerItem is one income or expense transaction. LedgerSet is the whole,
unordered collection of items stored in the remote document; it is the
unit of persistence and is never read or written partially.

DESIGN DECISION: LedgerSet is immutable. Every mutation returns a new
set, so a snapshot taken before a mutation is simply the previous value
and can never be disturbed by later changes.
"""

import datetime as dt
import json
from decimal import Decimal
from enum import Enum
from typing import Iterable, Iterator, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_serializer,
)

from gist_ledger.services.storage.interface import ParseError


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction. The amount itself is never signed."""
    EXPENSE = "expense"
    INCOME = "income"


# Suggestions only; category stays free text.
CATEGORY_SUGGESTIONS: dict[TransactionType, tuple[str, ...]] = {
    TransactionType.EXPENSE: (
        "Dining",
        "Transport",
        "Shopping",
        "Entertainment",
        "Housing",
        "Medical",
        "Education",
        "Other",
    ),
    TransactionType.INCOME: (
        "Salary",
        "Bonus",
        "Investment",
        "Part-time",
        "Other",
    ),
}


def default_category(transaction_type: TransactionType) -> str:
    """First suggested category for a type (what a fresh form shows)."""
    return CATEGORY_SUGGESTIONS[TransactionType(transaction_type)][0]


# =============================================================================
# LEDGER ITEM
# =============================================================================

class LedgerItem(BaseModel):
    """
    One recorded transaction, exactly as stored in the document.

    Wire form: {id, date, amount, category, remark?, type}
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Client-generated identifier, immutable"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative magnitude; direction comes from type"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Free-form category label"
    )
    remark: Optional[str] = Field(
        default=None,
        description="Optional annotation"
    )
    type: TransactionType = Field(
        ...,
        description="expense or income"
    )

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal):
        # Stored as a JSON number, like the documents the web client writes
        if amount == amount.to_integral_value():
            return int(amount)
        return float(amount)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign used for display (expenses negative)."""
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount

    def to_document(self) -> dict:
        """JSON-ready dict in the stored wire form."""
        return self.model_dump(mode="json", exclude_none=True)


class LedgerItemDraft(BaseModel):
    """
    User input for a new or edited item.

    Unlike LedgerItem, amount may carry a sign (its absolute value is
    stored) and id is only present when editing.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    date: dt.date = Field(default_factory=dt.date.today)
    amount: Decimal
    category: str = ""
    remark: Optional[str] = None
    type: TransactionType = TransactionType.EXPENSE

    @classmethod
    def from_item(cls, item: LedgerItem) -> "LedgerItemDraft":
        """Pre-fill a draft from a stored item (edit form)."""
        return cls(**item.model_dump())


_ITEMS_ADAPTER = TypeAdapter(list[LedgerItem])


# =============================================================================
# LEDGER SET
# =============================================================================

class LedgerSet:
    """
    The full collection of items owned by one document.

    Iteration yields items in insertion order, which is also the
    tie-break order used when sorting by date. Equality ignores order.
    """

    __slots__ = ("_items", "_index")

    def __init__(self, items: Iterable[LedgerItem] = ()):
        items = tuple(items)
        index = {}
        for position, item in enumerate(items):
            if item.id in index:
                raise ValueError(f"Duplicate ledger item id: {item.id}")
            index[item.id] = position
        self._items = items
        self._index = index

    @classmethod
    def empty(cls) -> "LedgerSet":
        return cls()

    @classmethod
    def from_json(cls, content: Optional[str]) -> "LedgerSet":
        """
        Parse stored document content.

        Missing or blank content is an empty ledger.

        Raises:
            ParseError: If the content is not a valid serialized ledger
        """
        if content is None or not content.strip():
            return cls.empty()

        try:
            raw = json.loads(content, parse_float=Decimal)
        except ValueError as e:
            raise ParseError(f"Ledger content is not valid JSON: {e}") from e

        if not isinstance(raw, list):
            raise ParseError("Ledger content must be a JSON array")

        try:
            items = _ITEMS_ADAPTER.validate_python(raw)
        except ValidationError as e:
            raise ParseError(
                f"Ledger content has {e.error_count()} invalid field(s): {e}"
            ) from e

        try:
            return cls(items)
        except ValueError as e:
            raise ParseError(str(e)) from e

    def to_json(self) -> str:
        """Serialize the entire set as a JSON array."""
        return json.dumps(
            [item.to_document() for item in self._items],
            ensure_ascii=False,
            indent=2,
        )

    @property
    def items(self) -> tuple[LedgerItem, ...]:
        return self._items

    def ids(self) -> set[str]:
        return set(self._index)

    def get(self, item_id: str) -> Optional[LedgerItem]:
        position = self._index.get(item_id)
        return None if position is None else self._items[position]

    def with_item(self, item: LedgerItem) -> "LedgerSet":
        """New set with item appended; its id must be unused."""
        if item.id in self._index:
            raise ValueError(f"Duplicate ledger item id: {item.id}")
        return LedgerSet(self._items + (item,))

    def replacing(self, item: LedgerItem) -> "LedgerSet":
        """New set with the item of the same id replaced in place."""
        position = self._index.get(item.id)
        if position is None:
            raise KeyError(item.id)
        items = list(self._items)
        items[position] = item
        return LedgerSet(items)

    def without(self, item_id: str) -> "LedgerSet":
        """New set with the item removed."""
        if item_id not in self._index:
            raise KeyError(item_id)
        return LedgerSet(item for item in self._items if item.id != item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._index

    def __iter__(self) -> Iterator[LedgerItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerSet):
            return NotImplemented
        if self._index.keys() != other._index.keys():
            return False
        return all(item == other.get(item.id) for item in self._items)

    __hash__ = None

    def __repr__(self) -> str:
        return f"LedgerSet({len(self._items)} items)"
