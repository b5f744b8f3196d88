"""
Services package.

Only the storage layer is re-exported here; session and sync modules
depend on the ledger models and are imported from their own modules.
"""

from gist_ledger.services.storage import (
    AuthError,
    DocumentStoreInterface,
    GitHubGistStore,
    InMemoryDocumentStore,
    NetworkError,
    NotFoundError,
    ParseError,
    StorageError,
)

__all__ = [
    "AuthError",
    "DocumentStoreInterface",
    "GitHubGistStore",
    "InMemoryDocumentStore",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "StorageError",
]
