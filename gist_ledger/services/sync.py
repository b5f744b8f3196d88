"""
Remote Sync Adapter

Translates ledger-level operations into document store calls:
- authenticate      -> who owns this credential
- resolve_document  -> find-or-create the ledger document
- fetch_ledger      -> read the whole ledger
- replace_ledger    -> overwrite the whole ledger

DESIGN DECISION: replace_ledger carries no revision token. The last write
to complete wins, even if it started earlier. Only the MutationCoordinator
may call replace_ledger, and it never has two writes in flight. Two
sessions using the same credential at once can still overwrite each
other; that is a single-session-only guarantee.
"""

from typing import Optional

import structlog

from gist_ledger.config import LedgerSettings, get_settings
from gist_ledger.models.ledger import LedgerSet
from gist_ledger.services.storage.interface import (
    DocumentStoreInterface,
    Identity,
)


logger = structlog.get_logger(__name__)


EMPTY_LEDGER_CONTENT = "[]"


class RemoteSyncAdapter:
    """
    Whole-document access to the ledger on a remote store.

    The store instance carries the session credential.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self.last_resolve_created = False

    @property
    def store(self) -> DocumentStoreInterface:
        return self._store

    @property
    def descriptor(self) -> str:
        return self._settings.document_description

    @property
    def filename(self) -> str:
        return self._settings.data_filename

    async def authenticate(self) -> Identity:
        """
        Confirm the credential works and report whose it is.

        Raises:
            AuthError: If the credential is rejected
        """
        identity = await self._store.get_identity()
        logger.info("authenticated", login=identity.login)
        return identity

    async def resolve_document(self) -> str:
        """
        Find the ledger document by its exact descriptor, or create it.

        Not atomic: two callers racing with the same credential may both
        create a document. Later resolves pick the first match listed.

        Returns:
            The document handle
        """
        for document in await self._store.list_documents():
            if document.description == self.descriptor:
                self.last_resolve_created = False
                logger.info("ledger_document_found", handle=document.handle)
                return document.handle

        handle = await self._store.create_document(
            description=self.descriptor,
            filename=self.filename,
            content=EMPTY_LEDGER_CONTENT,
        )
        self.last_resolve_created = True
        logger.info("ledger_document_created", handle=handle)
        return handle

    async def fetch_ledger(self, handle: str) -> LedgerSet:
        """
        Read and parse the whole ledger.

        Missing or empty content yields an empty ledger.

        Raises:
            ParseError: If the content is not a serialized ledger
            NotFoundError: If the handle no longer resolves
        """
        content = await self._store.get_document_content(handle, self.filename)
        ledger = LedgerSet.from_json(content)
        logger.debug("ledger_fetched", handle=handle, item_count=len(ledger))
        return ledger

    async def replace_ledger(self, handle: str, ledger: LedgerSet) -> None:
        """
        Overwrite the document with the serialization of the entire set.

        Raises:
            AuthError, NotFoundError, NetworkError: From the store
        """
        await self._store.replace_document_content(
            handle,
            self.filename,
            ledger.to_json(),
        )
        logger.debug("ledger_replaced", handle=handle, item_count=len(ledger))
