"""
History Query Engine

DESIGN DECISION: Queries are pure and synchronous. They run over the
in-memory LedgerSet, never touch the network and never modify the set.

Pipeline:
1. Type filter
2. Inclusive date range
3. Case-insensitive search in category or remark
4. Sort by date, newest first (ties keep insertion order)
5. Paginate
"""

import math
from typing import Optional

from gist_ledger.config import get_settings
from gist_ledger.models.ledger import LedgerItem, LedgerSet
from gist_ledger.models.views import FilterType, LedgerFilter, LedgerPage


class QueryEngine:
    """
    Filters, sorts and paginates a ledger for the history view.

    Page numbers are 1-indexed. A page below 1 is treated as 1; a page
    past the end is returned empty rather than raising.
    """

    def __init__(self, page_size: Optional[int] = None):
        if page_size is None:
            page_size = get_settings().ledger.page_size
        self._page_size = page_size
        if self._page_size < 1:
            raise ValueError("page_size must be at least 1")

    @property
    def page_size(self) -> int:
        return self._page_size

    @staticmethod
    def matches(item: LedgerItem, query: LedgerFilter) -> bool:
        """Does a single item pass the filter?"""
        if query.type != FilterType.ALL and item.type.value != query.type.value:
            return False

        if query.date_from and item.date < query.date_from:
            return False
        if query.date_to and item.date > query.date_to:
            return False

        if query.search_text:
            needle = query.search_text.casefold()
            in_category = needle in item.category.casefold()
            in_remark = needle in (item.remark or "").casefold()
            if not in_category and not in_remark:
                return False

        return True

    def filter_items(
        self,
        ledger: LedgerSet,
        query: Optional[LedgerFilter] = None,
    ) -> list[LedgerItem]:
        """Every matching item, newest first, unpaginated."""
        query = query or LedgerFilter()
        items = [item for item in ledger if self.matches(item, query)]
        # list.sort is stable, so equal dates keep insertion order
        items.sort(key=lambda item: item.date, reverse=True)
        return items

    def total_pages(self, item_count: int) -> int:
        return math.ceil(item_count / self._page_size)

    def run(
        self,
        ledger: LedgerSet,
        query: Optional[LedgerFilter] = None,
        page: int = 1,
    ) -> LedgerPage:
        """Filter, sort and return one page."""
        items = self.filter_items(ledger, query)
        total_pages = self.total_pages(len(items))
        page = max(page, 1)

        start = (page - 1) * self._page_size
        return LedgerPage(
            items=tuple(items[start:start + self._page_size]),
            page=page,
            page_size=self._page_size,
            total_items=len(items),
            total_pages=total_pages,
        )


class HistoryCursor:
    """
    Filter and page state of a history view.

    Changing any part of the filter sends the cursor back to page 1,
    so a page number from a larger result never points past the end of
    a smaller one.
    """

    def __init__(self, engine: Optional[QueryEngine] = None):
        self._engine = engine or QueryEngine()
        self._filter = LedgerFilter()
        self._page = 1

    @property
    def filter(self) -> LedgerFilter:
        return self._filter

    @property
    def page(self) -> int:
        return self._page

    def set_filter(self, **changes) -> LedgerFilter:
        """
        Change one or more filter fields (type, date_from, date_to,
        search_text) and reset to page 1.
        """
        unknown = set(changes) - set(LedgerFilter.model_fields)
        if unknown:
            raise TypeError(f"Unknown filter fields: {', '.join(sorted(unknown))}")

        self._filter = LedgerFilter.model_validate({
            **self._filter.model_dump(),
            **changes,
        })
        self._page = 1
        return self._filter

    def clear_dates(self) -> LedgerFilter:
        return self.set_filter(date_from=None, date_to=None)

    def reset(self) -> None:
        self._filter = LedgerFilter()
        self._page = 1

    def current(self, ledger: LedgerSet) -> LedgerPage:
        """The page the cursor points at, for the given ledger."""
        return self._engine.run(ledger, self._filter, self._page)

    def go_to(self, ledger: LedgerSet, page: int) -> LedgerPage:
        """Jump to a page, clamped to [1, total_pages]."""
        total = self._engine.total_pages(
            len(self._engine.filter_items(ledger, self._filter))
        )
        self._page = min(max(page, 1), max(total, 1))
        return self.current(ledger)

    def next_page(self, ledger: LedgerSet) -> LedgerPage:
        return self.go_to(ledger, self._page + 1)

    def previous_page(self, ledger: LedgerSet) -> LedgerPage:
        return self.go_to(ledger, self._page - 1)
