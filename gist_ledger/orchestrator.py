"""
Main Orchestrator for Gist Ledger

Ties the components together and defines the session flows:
1. Connect (token -> authenticate -> find-or-create document -> load)
2. Resume (stored token + handle -> authenticate -> load)
3. Logout (finish queued writes -> forget credentials)

DESIGN DECISION: The orchestrator enforces the session boundaries:
- Credentials are persisted only after a connect fully succeeds
- A stored session that fails to resume is cleared, never reused
- An unreadable ledger opens read-only instead of failing the session
"""

from datetime import date
from typing import Callable, Optional

import structlog

from gist_ledger.audit import AuditLogger
from gist_ledger.config import LedgerSettings, get_settings
from gist_ledger.coordinator import MutationCoordinator
from gist_ledger.models.audit import AuditEventBuilder
from gist_ledger.models.ledger import LedgerSet
from gist_ledger.models.views import LedgerPage, StatisticsReport
from gist_ledger.queries import AggregationEngine, HistoryCursor, QueryEngine
from gist_ledger.services.session import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionContext,
    SessionStoreInterface,
)
from gist_ledger.services.storage import (
    DocumentStoreInterface,
    GitHubGistStore,
    Identity,
    InMemoryDocumentStore,
    ParseError,
    StorageError,
)
from gist_ledger.services.sync import RemoteSyncAdapter


logger = structlog.get_logger(__name__)


StoreFactory = Callable[[str], DocumentStoreInterface]


class LedgerSession:
    """
    One authenticated session over one ledger document.

    Mutations go through `coordinator`; history and statistics are
    derived from `coordinator.ledger` on every call.
    """

    def __init__(
        self,
        adapter: RemoteSyncAdapter,
        coordinator: MutationCoordinator,
        identity: Identity,
        query_engine: Optional[QueryEngine] = None,
        unrecoverable: bool = False,
    ):
        self.adapter = adapter
        self.coordinator = coordinator
        self.identity = identity
        self.unrecoverable = unrecoverable
        self.history = HistoryCursor(query_engine)
        self.aggregation = AggregationEngine()

    @property
    def ledger(self) -> LedgerSet:
        return self.coordinator.ledger

    @property
    def handle(self) -> str:
        return self.coordinator.handle

    def history_page(self) -> LedgerPage:
        """The page the history cursor currently points at."""
        return self.history.current(self.ledger)

    def statistics(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> StatisticsReport:
        """Statistics for a period, defaulting to the current month."""
        today = date.today()
        return self.aggregation.report(
            self.ledger,
            year if year is not None else today.year,
            month if month is not None else today.month,
        )

    async def close(self) -> None:
        await self.coordinator.wait_idle()
        await self.adapter.store.aclose()


class LedgerApp:
    """
    Session lifecycle around the ledger.

    Args:
        store_factory: Builds a document store for a token
        session_store: Where token and document handle persist
    """

    def __init__(
        self,
        store_factory: Optional[StoreFactory] = None,
        session_store: Optional[SessionStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        ledger_settings: Optional[LedgerSettings] = None,
        query_engine: Optional[QueryEngine] = None,
    ):
        self._store_factory = store_factory or (lambda token: GitHubGistStore(token=token))
        self._session_store = session_store or JsonFileSessionStore()
        self._audit = audit_logger or AuditLogger()
        self._ledger_settings = ledger_settings or get_settings().ledger
        self._query_engine = query_engine or QueryEngine(self._ledger_settings.page_size)
        self._session: Optional[LedgerSession] = None

    @property
    def session(self) -> Optional[LedgerSession]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    async def connect(self, token: str) -> LedgerSession:
        """
        Start a session from a token typed by the user.

        Raises:
            AuthError: Token rejected (nothing is persisted)
            NetworkError: Store unreachable
        """
        store = self._store_factory(token)
        adapter = RemoteSyncAdapter(store, self._ledger_settings)

        try:
            identity = await adapter.authenticate()
            handle = await adapter.resolve_document()
            self._audit.log(AuditEventBuilder.document_resolved(
                handle,
                created=adapter.last_resolve_created,
            ))
            session = await self._open(adapter, handle, identity)
        except StorageError as e:
            self._audit.log_external_service_error("document_store", e)
            await store.aclose()
            raise

        self._session_store.save(SessionContext(token=token, document_handle=handle))
        self._audit.log(AuditEventBuilder.session_connected(identity.login, handle))
        return session

    async def resume(self) -> Optional[LedgerSession]:
        """
        Restore the stored session, if any.

        Returns None when there is no stored session, or when resuming
        failed; in the latter case the stored credentials are cleared.
        """
        context = self._session_store.load()
        if context is None:
            return None

        store = None
        try:
            store = self._store_factory(context.token.get_secret_value())
            adapter = RemoteSyncAdapter(store, self._ledger_settings)
            identity = await adapter.authenticate()
            session = await self._open(adapter, context.document_handle, identity)
        except StorageError as e:
            logger.warning("session_resume_failed", error=str(e))
            self._session_store.clear()
            self._audit.log(AuditEventBuilder.session_resume_failed(e))
            if store is not None:
                await store.aclose()
            return None

        self._audit.log(AuditEventBuilder.session_resumed(
            context.document_handle,
            len(session.ledger),
        ))
        return session

    async def logout(self) -> None:
        """Wait for queued writes, then forget the session everywhere."""
        session, self._session = self._session, None
        try:
            if session is not None:
                await session.close()
        finally:
            self._session_store.clear()
            self._audit.log(AuditEventBuilder.session_logged_out())

    async def _open(
        self,
        adapter: RemoteSyncAdapter,
        handle: str,
        identity: Identity,
    ) -> LedgerSession:
        unrecoverable = False
        try:
            ledger = await adapter.fetch_ledger(handle)
            self._audit.log(AuditEventBuilder.ledger_loaded(handle, len(ledger)))
        except ParseError as e:
            logger.error("ledger_unreadable", handle=handle, error=str(e))
            self._audit.log(AuditEventBuilder.ledger_parse_failed(handle, e))
            ledger = LedgerSet.empty()
            unrecoverable = True

        coordinator = MutationCoordinator(
            adapter,
            handle,
            ledger,
            audit_logger=self._audit,
            read_only=unrecoverable,
        )
        previous, self._session = self._session, LedgerSession(
            adapter,
            coordinator,
            identity,
            query_engine=self._query_engine,
            unrecoverable=unrecoverable,
        )
        if previous is not None:
            await previous.close()
        return self._session


def create_app(offline: bool = False) -> LedgerApp:
    """
    Factory function to create the application.

    Args:
        offline: Use an in-memory store and session instead of GitHub
                 and the session file. Data is lost on exit.
    """
    if offline:
        store = InMemoryDocumentStore()
        return LedgerApp(
            store_factory=lambda token: store,
            session_store=InMemorySessionStore(),
        )

    return LedgerApp()
