"""
Session Persistence

The session is two strings: the GitHub token and the handle of the
resolved ledger document. They are stored under fixed keys, saved
together after a successful connect, and removed together on logout or
when a stored session fails to resume.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from gist_ledger.config import get_settings


logger = structlog.get_logger(__name__)


TOKEN_KEY = "gist_token"
HANDLE_KEY = "gist_id"


class SessionContext(BaseModel):
    """Credential plus the document it resolved to."""
    model_config = ConfigDict(frozen=True)

    token: SecretStr = Field(
        ...,
        description="GitHub token with the gist scope"
    )
    document_handle: str = Field(
        ...,
        min_length=1,
        description="Id of the gist holding the ledger"
    )

    def to_entries(self) -> dict[str, str]:
        return {
            TOKEN_KEY: self.token.get_secret_value(),
            HANDLE_KEY: self.document_handle,
        }

    @classmethod
    def from_entries(cls, entries: dict) -> Optional["SessionContext"]:
        """Build from stored entries; None unless both are present."""
        token = entries.get(TOKEN_KEY)
        handle = entries.get(HANDLE_KEY)
        if not token or not handle:
            return None
        return cls(token=token, document_handle=handle)


class SessionStoreInterface(ABC):
    """Key-value persistence for the session across restarts."""

    @abstractmethod
    def load(self) -> Optional[SessionContext]:
        """Return the saved session, or None if there is none."""
        pass

    @abstractmethod
    def save(self, context: SessionContext) -> None:
        """Persist both entries."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove both entries."""
        pass


class InMemorySessionStore(SessionStoreInterface):
    """Session store that lives only as long as the process."""

    def __init__(self, entries: Optional[dict[str, str]] = None):
        self.entries: dict[str, str] = dict(entries or {})

    def load(self) -> Optional[SessionContext]:
        return SessionContext.from_entries(self.entries)

    def save(self, context: SessionContext) -> None:
        self.entries.update(context.to_entries())

    def clear(self) -> None:
        self.entries.pop(TOKEN_KEY, None)
        self.entries.pop(HANDLE_KEY, None)


class JsonFileSessionStore(SessionStoreInterface):
    """
    Session store backed by a small JSON file.

    The file is written with owner-only permissions since it holds the
    token in clear text.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path or get_settings().session.session_file).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[SessionContext]:
        if not self._path.exists():
            return None

        try:
            entries = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("session_file_unreadable", path=str(self._path), error=str(e))
            self.clear()
            return None

        if not isinstance(entries, dict):
            logger.warning("session_file_malformed", path=str(self._path))
            self.clear()
            return None

        return SessionContext.from_entries(entries)

    def save(self, context: SessionContext) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(context.to_entries()), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
