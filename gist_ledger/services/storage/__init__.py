"""
Storage Services Package

Provides the abstract document store interface and its implementations.
GitHub Gist is the production backend; the in-memory store is for tests
and offline use.
"""

from gist_ledger.services.storage.interface import (
    AuthError,
    DocumentStoreInterface,
    DocumentSummary,
    Identity,
    NetworkError,
    NotFoundError,
    ParseError,
    StorageError,
)
from gist_ledger.services.storage.gist import (
    GitHubGistClient,
    GitHubGistStore,
)
from gist_ledger.services.storage.memory import InMemoryDocumentStore

__all__ = [
    # Interface
    "DocumentStoreInterface",
    "DocumentSummary",
    "Identity",
    # Exceptions
    "AuthError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "StorageError",
    # Implementations
    "GitHubGistClient",
    "GitHubGistStore",
    "InMemoryDocumentStore",
]
