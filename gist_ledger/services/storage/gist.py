"""
GitHub Gist Document Store

DESIGN DECISION: A private gist is used as the ledger's backing store:
1. Every GitHub user already has one, no server to run
2. The user owns and can inspect the raw JSON at any time
3. Gists keep their own revision history on GitHub's side

TRADEOFFS:
- The API replaces whole files; there is no conditional write
- Listing gists is paginated, so find-or-create walks every page
- Large files are truncated in the gist payload and must be fetched raw

Only idempotent GET requests are retried here (wire-level retries).
POST and PATCH are sent exactly once; deciding what to do after a failed
write is the caller's business.
"""

from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from gist_ledger.config import GitHubSettings, get_settings
from gist_ledger.services.storage.interface import (
    AuthError,
    DocumentStoreInterface,
    DocumentSummary,
    Identity,
    NetworkError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "github_request_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


class GitHubGistClient:
    """
    Low-level GitHub REST client.

    Handles authentication headers, maps HTTP failures onto the storage
    error hierarchy and provides retry logic for GET requests.
    """

    def __init__(
        self,
        token: str,
        settings: Optional[GitHubSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        if not token or not token.strip():
            raise AuthError("A GitHub token is required")

        self._settings = settings or get_settings().github
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._http = httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            headers={
                "Authorization": f"Bearer {token.strip()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": self._settings.api_version,
                "Cache-Control": "no-cache",
            },
            timeout=self._settings.timeout_seconds,
            transport=transport,
        )

    @property
    def settings(self) -> GitHubSettings:
        return self._settings

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request and translate failures."""
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"GitHub unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"GitHub rejected the token ({response.status_code}); "
                "it needs the 'gist' scope"
            )
        if response.status_code == 404:
            raise NotFoundError(f"GitHub resource not found: {method} {url}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"GitHub API error: {e.response.status_code}") from e

        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET with exponential backoff on network failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_retries),
            wait=self._retry_wait,
            retry=retry_if_exception_type(NetworkError),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await self._request("GET", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return self._decode(await self.get(url, **kwargs))

    async def send_json(self, method: str, url: str, payload: dict) -> Any:
        """Send a write request once, no retries."""
        return self._decode(await self._request(method, url, json=payload))

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"GitHub returned a non-JSON body: {e}") from e

    async def aclose(self) -> None:
        await self._http.aclose()


class GitHubGistStore(DocumentStoreInterface):
    """
    GitHub Gist implementation of the document store.

    One gist is one document; its description is the descriptor and the
    ledger is one file inside it.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        client: Optional[GitHubGistClient] = None,
    ):
        if client is None:
            if token is None:
                raise AuthError("Either a token or a client is required")
            client = GitHubGistClient(token)
        self._client = client

    async def get_identity(self) -> Identity:
        """Validate the token via GET /user."""
        data = await self._client.get_json("/user")
        try:
            return Identity(login=data["login"], name=data.get("name"))
        except (KeyError, TypeError) as e:
            raise NetworkError(f"Unexpected /user payload: {e}") from e

    async def list_documents(self) -> list[DocumentSummary]:
        """Walk every page of GET /gists."""
        per_page = self._client.settings.gists_per_page
        documents = []
        page = 1

        while True:
            batch = await self._client.get_json(
                "/gists",
                params={"per_page": per_page, "page": page},
            )
            if not isinstance(batch, list):
                raise NetworkError("Unexpected /gists payload: not a list")

            for gist in batch:
                try:
                    documents.append(DocumentSummary(
                        handle=gist["id"],
                        description=gist.get("description"),
                    ))
                except (KeyError, TypeError) as e:
                    raise NetworkError(f"Unexpected gist entry: {e}") from e

            if len(batch) < per_page:
                break
            page += 1

        logger.debug("gists_listed", count=len(documents), pages=page)
        return documents

    async def create_document(
        self,
        description: str,
        filename: str,
        content: str,
    ) -> str:
        """Create a secret gist with a single file."""
        data = await self._client.send_json("POST", "/gists", {
            "description": description,
            "public": False,
            "files": {filename: {"content": content}},
        })
        try:
            handle = data["id"]
        except (KeyError, TypeError) as e:
            raise NetworkError(f"Unexpected create-gist payload: {e}") from e

        logger.info("gist_created", gist_id=handle)
        return handle

    async def get_document_content(
        self,
        handle: str,
        filename: str,
    ) -> Optional[str]:
        """Fetch one file, following raw_url when GitHub truncated it."""
        data = await self._client.get_json(f"/gists/{handle}")
        files = (data or {}).get("files") or {}
        entry = files.get(filename)
        if entry is None:
            return None

        if entry.get("truncated") and entry.get("raw_url"):
            response = await self._client.get(entry["raw_url"])
            return response.text

        return entry.get("content")

    async def replace_document_content(
        self,
        handle: str,
        filename: str,
        content: str,
    ) -> None:
        """
        Overwrite one file via PATCH /gists/{id}.

        GitHub deletes a file whose new content is empty, so empty
        content is refused here.
        """
        if not content:
            raise StorageError("Refusing to write empty content (GitHub would delete the file)")

        await self._client.send_json("PATCH", f"/gists/{handle}", {
            "files": {filename: {"content": content}},
        })
        logger.debug("gist_file_replaced", gist_id=handle, size=len(content))

    async def aclose(self) -> None:
        await self._client.aclose()
