"""
Statistics Aggregation

Pure, synchronous sums over a LedgerSet for the statistics view:
- month totals (income, expense, balance)
- year totals
- 12-month income/expense trend for a year

All sums are plain Decimal additions. Rounding to two decimals is a
display concern (see format_amount) and never applied here.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from gist_ledger.models.ledger import LedgerItem, LedgerSet, TransactionType
from gist_ledger.models.views import PeriodTotals, StatisticsReport, YearTrend


ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")


def _totals(items: Iterable[LedgerItem]) -> PeriodTotals:
    income = ZERO
    expense = ZERO
    for item in items:
        if item.type == TransactionType.INCOME:
            income += item.amount
        else:
            expense += item.amount
    return PeriodTotals(income=income, expense=expense)


class AggregationEngine:
    """Period totals and trends for the statistics view."""

    @staticmethod
    def month_totals(ledger: LedgerSet, year: int, month: int) -> PeriodTotals:
        _check_month(month)
        return _totals(
            item for item in ledger
            if item.date.year == year and item.date.month == month
        )

    @staticmethod
    def year_totals(ledger: LedgerSet, year: int) -> PeriodTotals:
        return _totals(item for item in ledger if item.date.year == year)

    @staticmethod
    def year_trend(ledger: LedgerSet, year: int) -> YearTrend:
        income = [ZERO] * 12
        expense = [ZERO] * 12
        for item in ledger:
            if item.date.year != year:
                continue
            index = item.date.month - 1
            if item.type == TransactionType.INCOME:
                income[index] += item.amount
            else:
                expense[index] += item.amount
        return YearTrend(year=year, income=tuple(income), expense=tuple(expense))

    def report(self, ledger: LedgerSet, year: int, month: int) -> StatisticsReport:
        """Everything the statistics view needs for one (year, month)."""
        return StatisticsReport(
            year=year,
            month=month,
            month_totals=self.month_totals(ledger, year, month),
            year_totals=self.year_totals(ledger, year),
            trend=self.year_trend(ledger, year),
        )

    @staticmethod
    def category_breakdown(
        ledger: LedgerSet,
        year: int,
        month: Optional[int] = None,
        transaction_type: TransactionType = TransactionType.EXPENSE,
    ) -> list[tuple[str, Decimal]]:
        """
        Summed amount per category for a year (or one month of it),
        largest first. Ties are ordered by category name.
        """
        if month is not None:
            _check_month(month)

        sums: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for item in ledger:
            if item.type != transaction_type or item.date.year != year:
                continue
            if month is not None and item.date.month != month:
                continue
            sums[item.category] += item.amount

        return sorted(sums.items(), key=lambda pair: (-pair[1], pair[0]))


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """
    Move a (year, month) period by offset months, crossing years.

    shift_month(2024, 1, -1) == (2023, 12)
    """
    _check_month(month)
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def format_amount(value: Decimal, signed: bool = False) -> str:
    """Two-decimal display string; signed adds '+' to positive values."""
    text = f"{value.quantize(TWO_PLACES):.2f}"
    if signed and value > 0:
        return f"+{text}"
    return text
