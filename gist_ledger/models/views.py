"""
Derived View Models

Inputs and outputs of the history query and statistics computations.
None of these are persisted; they are recomputed from the in-memory
LedgerSet whenever a view needs them.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from gist_ledger.models.ledger import LedgerItem


ZERO = Decimal("0")


# =============================================================================
# HISTORY QUERY MODELS
# =============================================================================

class FilterType(str, Enum):
    """Type selector in the history filter."""
    ALL = "all"
    EXPENSE = "expense"
    INCOME = "income"


class LedgerFilter(BaseModel):
    """
    History filter.

    Both date bounds are inclusive. search_text is matched
    case-insensitively against category and remark.
    """
    model_config = ConfigDict(frozen=True)

    type: FilterType = Field(
        default=FilterType.ALL,
        description="all, expense or income"
    )
    date_from: Optional[dt.date] = Field(
        default=None,
        description="Keep items on or after this date"
    )
    date_to: Optional[dt.date] = Field(
        default=None,
        description="Keep items on or before this date"
    )
    search_text: str = Field(
        default="",
        description="Substring of category or remark"
    )

    @field_validator("search_text", mode="before")
    @classmethod
    def none_is_blank(cls, v):
        return "" if v is None else v

    @property
    def is_active(self) -> bool:
        """True when any field narrows the result."""
        return (
            self.type != FilterType.ALL
            or self.date_from is not None
            or self.date_to is not None
            or bool(self.search_text)
        )


class LedgerPage(BaseModel):
    """One page of filtered, date-sorted history."""
    model_config = ConfigDict(frozen=True)

    items: tuple[LedgerItem, ...] = ()
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def is_empty(self) -> bool:
        return not self.items


# =============================================================================
# STATISTICS MODELS
# =============================================================================

class PeriodTotals(BaseModel):
    """Income and expense summed over a period."""
    model_config = ConfigDict(frozen=True)

    income: Decimal = ZERO
    expense: Decimal = ZERO

    @computed_field
    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class YearTrend(BaseModel):
    """
    Per-month sums for one year.

    Index 0 is January, index 11 is December. Months without items
    hold zero.
    """
    model_config = ConfigDict(frozen=True)

    year: int
    income: tuple[Decimal, ...] = Field(..., min_length=12, max_length=12)
    expense: tuple[Decimal, ...] = Field(..., min_length=12, max_length=12)

    @property
    def total_income(self) -> Decimal:
        return sum(self.income, ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum(self.expense, ZERO)


class StatisticsReport(BaseModel):
    """Everything the statistics screen shows for a (year, month)."""
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(..., ge=1, le=12)
    month_totals: PeriodTotals
    year_totals: PeriodTotals
    trend: YearTrend
