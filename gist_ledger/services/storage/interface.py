"""
Abstract Document Store Interface

DESIGN DECISION: The ledger lives in ONE opaque text document owned by
the user. The store only has to:
1. Tell us who the credential belongs to
2. List documents with their descriptions
3. Create a document
4. Return the content of a file in a document
5. Replace the content of a file in a document

There is no partial update, merge or revision check. Everything above
this layer treats the store as "read it all / overwrite it all".

The interface carries the credential inside the concrete instance, so
callers never pass tokens around.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """The account that owns the credential."""

    login: str = Field(
        ...,
        min_length=1,
        description="Account login name"
    )
    name: Optional[str] = Field(
        default=None,
        description="Display name if the account has one"
    )

    @property
    def display_name(self) -> str:
        return self.name or self.login


class DocumentSummary(BaseModel):
    """A document as seen in a listing."""

    handle: str = Field(
        ...,
        min_length=1,
        description="Opaque document identifier"
    )
    description: Optional[str] = Field(
        default=None,
        description="Free-text descriptor attached to the document"
    )


class DocumentStoreInterface(ABC):
    """
    Abstract interface for a single-document remote store.

    Any backend (GitHub Gist, in-memory, ...) must implement these methods.
    """

    @abstractmethod
    async def get_identity(self) -> Identity:
        """
        Validate the credential and describe its owner.

        Raises:
            AuthError: If the credential is invalid
            NetworkError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def list_documents(self) -> list[DocumentSummary]:
        """
        List every document the credential can see.

        Returns:
            Summaries in the order the store reports them
        """
        pass

    @abstractmethod
    async def create_document(
        self,
        description: str,
        filename: str,
        content: str,
    ) -> str:
        """
        Create a private document holding a single file.

        Args:
            description: Descriptor used to find the document later
            filename: Name of the file inside the document
            content: Initial file content

        Returns:
            Handle of the new document
        """
        pass

    @abstractmethod
    async def get_document_content(
        self,
        handle: str,
        filename: str,
    ) -> Optional[str]:
        """
        Fetch the content of one file.

        Returns:
            The file content, or None if the file does not exist

        Raises:
            NotFoundError: If the document itself does not exist
        """
        pass

    @abstractmethod
    async def replace_document_content(
        self,
        handle: str,
        filename: str,
        content: str,
    ) -> None:
        """
        Overwrite the content of one file unconditionally.

        Raises:
            AuthError: If the credential may not write the document
            NotFoundError: If the document no longer exists
            NetworkError: If the store cannot be reached
        """
        pass

    async def aclose(self) -> None:
        """Release any underlying connections."""
        return None


class StorageError(Exception):
    """Base exception for document store operations."""
    pass


class AuthError(StorageError):
    """Credential invalid or lacking permission."""
    pass


class NotFoundError(StorageError):
    """Document handle no longer resolves."""
    pass


class NetworkError(StorageError):
    """Could not reach the store, or it answered with garbage."""
    pass


class ParseError(StorageError):
    """Stored content is not a valid serialized ledger."""
    pass
