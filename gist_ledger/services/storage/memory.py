"""
In-Memory Document Store

Keeps documents in a dict. Used by the test-suite and for running the
ledger offline; behaves like the gist backend for every contract that
matters (exact-match descriptors, whole-file replacement, auth check).
"""

from itertools import count
from typing import Optional

from gist_ledger.services.storage.interface import (
    AuthError,
    DocumentStoreInterface,
    DocumentSummary,
    Identity,
    NotFoundError,
)


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Dict-backed document store.

    Args:
        token: The token presented by the caller
        valid_token: The only token accepted; None accepts any token
        login: Login reported by get_identity
    """

    def __init__(
        self,
        token: str = "local",
        valid_token: Optional[str] = None,
        login: str = "local-user",
    ):
        self._token = token
        self._valid_token = valid_token
        self._login = login
        self._documents: dict[str, dict] = {}
        self._ids = count(1)
        self.created_count = 0
        self.write_count = 0

    def _check_token(self) -> None:
        if self._valid_token is not None and self._token != self._valid_token:
            raise AuthError("Bad credentials")

    def _get(self, handle: str) -> dict:
        try:
            return self._documents[handle]
        except KeyError:
            raise NotFoundError(f"Document not found: {handle}")

    async def get_identity(self) -> Identity:
        self._check_token()
        return Identity(login=self._login)

    async def list_documents(self) -> list[DocumentSummary]:
        self._check_token()
        return [
            DocumentSummary(handle=handle, description=doc["description"])
            for handle, doc in self._documents.items()
        ]

    async def create_document(
        self,
        description: str,
        filename: str,
        content: str,
    ) -> str:
        self._check_token()
        handle = f"doc-{next(self._ids)}"
        self._documents[handle] = {
            "description": description,
            "files": {filename: content},
        }
        self.created_count += 1
        return handle

    async def get_document_content(
        self,
        handle: str,
        filename: str,
    ) -> Optional[str]:
        self._check_token()
        return self._get(handle)["files"].get(filename)

    async def replace_document_content(
        self,
        handle: str,
        filename: str,
        content: str,
    ) -> None:
        self._check_token()
        self._get(handle)["files"][filename] = content
        self.write_count += 1

    def delete_document(self, handle: str) -> None:
        """Drop a document, as if removed on the remote side."""
        self._documents.pop(handle, None)

    def raw_content(self, handle: str, filename: str) -> Optional[str]:
        """Peek at stored content without going through the async API."""
        return self._get(handle)["files"].get(filename)
