"""Shared fixtures: item factories and a scriptable document store."""

import asyncio
import datetime as dt
from decimal import Decimal
from typing import Iterable, Optional

import pytest

from gist_ledger.audit import AuditLogger
from gist_ledger.config import LedgerSettings
from gist_ledger.models.ledger import LedgerItem, LedgerSet, TransactionType
from gist_ledger.services.storage import InMemoryDocumentStore, NetworkError


class ScriptedStore(InMemoryDocumentStore):
    """
    In-memory store whose writes can be slowed down or made to fail.

    delays[n] / failures refer to the n-th call of
    replace_document_content (0-based).
    """

    def __init__(
        self,
        delays: Iterable[float] = (),
        failures: Iterable[int] = (),
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._delays = list(delays)
        self._failures = set(failures)
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def replace_document_content(self, handle, filename, content):
        call = self.calls
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delays[call] if call < len(self._delays) else 0)
            if call in self._failures:
                raise NetworkError("connection reset by peer")
            await super().replace_document_content(handle, filename, content)
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_item():
    """Build a LedgerItem with sensible defaults."""

    def _make(
        item_id: str,
        day: str = "2024-03-15",
        amount: str = "10",
        category: str = "Dining",
        remark: Optional[str] = None,
        type_: TransactionType = TransactionType.EXPENSE,
    ) -> LedgerItem:
        return LedgerItem(
            id=item_id,
            date=dt.date.fromisoformat(day),
            amount=Decimal(amount),
            category=category,
            remark=remark,
            type=type_,
        )

    return _make


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        document_description="GistLedger-Data",
        data_filename="ledger_data.json",
        page_size=10,
    )


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(history_size=200)


@pytest.fixture
def scripted_store():
    return ScriptedStore


@pytest.fixture
def seed_document(ledger_settings):
    """Create the ledger document in a store with initial content."""

    async def _seed(store: InMemoryDocumentStore, ledger: Optional[LedgerSet] = None) -> str:
        return await store.create_document(
            description=ledger_settings.document_description,
            filename=ledger_settings.data_filename,
            content=(ledger or LedgerSet.empty()).to_json(),
        )

    return _seed
