"""
Mutation Coordinator

Owns the in-memory ledger for a session and is the ONLY caller of
RemoteSyncAdapter.replace_ledger.

FLOW for add / update / delete:
1. Validate input (ValidationError, nothing changes)
2. Apply the change to the in-memory ledger immediately (optimistic)
3. Queue behind any write already in flight
4. Write the whole ledger
5. On failure, drop this change from the in-memory ledger and raise
   MutationFailedError

State machine per session: STABLE -> PENDING -> {STABLE, ROLLED_BACK}

The coordinator keeps two things:
- confirmed: the last ledger known to be stored remotely
- pending: mutations applied locally whose write has not settled

The in-memory ledger is always confirmed with every pending mutation
replayed in order. Writes run one at a time in submission order and each
carries confirmed plus its own change, so when every write has settled
the remote document equals the in-memory ledger. A failed write removes
only its own mutation; with a single pending mutation this restores
exactly the pre-mutation ledger.
"""

import asyncio
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from gist_ledger.audit import AuditLogger, create_correlation_id
from gist_ledger.models.ledger import LedgerItem, LedgerSet
from gist_ledger.services.storage.interface import StorageError
from gist_ledger.services.sync import RemoteSyncAdapter
from gist_ledger.validation import (
    LedgerItemValidator,
    ValidationError,
    ValidationIssue,
    new_item_id,
)
from gist_ledger.validation.validator import DraftInput


class LedgerError(Exception):
    """Base exception for ledger mutations."""
    pass


class MutationFailedError(LedgerError):
    """The remote write failed and the change was rolled back."""

    def __init__(self, kind: str, item_id: str, message: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"Could not {kind} item {item_id}: {message}")


class ItemNotFoundError(LedgerError):
    """No item with the given id in the ledger."""
    pass


class ReadOnlyLedgerError(LedgerError):
    """The stored ledger could not be parsed; writing would destroy it."""
    pass


class MutationState(str, Enum):
    STABLE = "stable"
    PENDING = "pending"
    ROLLED_BACK = "rolled_back"


class MutationKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


class PendingMutation(BaseModel):
    """A locally applied change awaiting its remote write."""
    model_config = ConfigDict(frozen=True)

    kind: MutationKind
    item_id: str
    item: Optional[LedgerItem] = None
    correlation_id: UUID = Field(default_factory=create_correlation_id)

    def apply(self, ledger: LedgerSet) -> LedgerSet:
        """
        Replay this change on a ledger.

        Replays are tolerant: if an earlier change was rolled back and
        the target item no longer exists (or already exists for an add),
        the ledger is returned unchanged.
        """
        present = self.item_id in ledger
        if self.kind == MutationKind.ADD:
            return ledger if present else ledger.with_item(self.item)
        if not present:
            return ledger
        if self.kind == MutationKind.UPDATE:
            return ledger.replacing(self.item)
        return ledger.without(self.item_id)


class MutationCoordinator:
    """
    Optimistic, serialized writer for one ledger document.

    Args:
        adapter: Remote access bound to the session credential
        handle: The ledger document handle
        ledger: The ledger as last fetched from the document
        read_only: Reject every mutation (used when the stored content
                   could not be parsed)
    """

    def __init__(
        self,
        adapter: RemoteSyncAdapter,
        handle: str,
        ledger: Optional[LedgerSet] = None,
        validator: Optional[LedgerItemValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        read_only: bool = False,
    ):
        self._adapter = adapter
        self._handle = handle
        self._confirmed = ledger if ledger is not None else LedgerSet.empty()
        self._view = self._confirmed
        self._pending: list[PendingMutation] = []
        self._validator = validator or LedgerItemValidator()
        self._audit = audit_logger or AuditLogger()
        self._read_only = read_only
        self._write_lock = asyncio.Lock()
        self._last_outcome = MutationState.STABLE

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def ledger(self) -> LedgerSet:
        """The in-memory ledger, including changes still being written."""
        return self._view

    @property
    def confirmed_ledger(self) -> LedgerSet:
        """The ledger as last written to (or read from) the document."""
        return self._confirmed

    @property
    def handle(self) -> str:
        return self._handle

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def state(self) -> MutationState:
        if self._pending:
            return MutationState.PENDING
        return self._last_outcome

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def add(self, data: DraftInput) -> LedgerItem:
        """
        Add a new item under a freshly generated id.

        Raises:
            ValidationError: Input rejected, nothing changed
            MutationFailedError: Write failed, change rolled back
            ReadOnlyLedgerError: Ledger is read-only
        """
        self._ensure_writable(MutationKind.ADD)
        item = self._build_item(MutationKind.ADD, data, item_id=new_item_id())
        await self._submit(PendingMutation(
            kind=MutationKind.ADD,
            item_id=item.id,
            item=item,
        ))
        return item

    async def update(self, data: DraftInput) -> LedgerItem:
        """
        Replace the item carrying the same id.

        Raises:
            ValidationError: Input rejected or id missing
            ItemNotFoundError: No item with that id
            MutationFailedError: Write failed, change rolled back
        """
        self._ensure_writable(MutationKind.UPDATE)
        item = self._build_item(MutationKind.UPDATE, data)
        if item.id not in self._view:
            raise ItemNotFoundError(f"No ledger item with id {item.id}")
        await self._submit(PendingMutation(
            kind=MutationKind.UPDATE,
            item_id=item.id,
            item=item,
        ))
        return item

    async def delete(self, item_id: str) -> None:
        """
        Remove an item. Asking the user first is the caller's job.

        Raises:
            ItemNotFoundError: No item with that id
            MutationFailedError: Write failed, item restored
        """
        self._ensure_writable(MutationKind.DELETE)
        if item_id not in self._view:
            raise ItemNotFoundError(f"No ledger item with id {item_id}")
        await self._submit(PendingMutation(
            kind=MutationKind.DELETE,
            item_id=item_id,
        ))

    async def wait_idle(self) -> None:
        """Wait until no write is queued or in flight."""
        while self._pending:
            async with self._write_lock:
                pass

    async def reload(self) -> LedgerSet:
        """
        Re-read the ledger from the document.

        Waits for queued writes first. A successful parse also lifts
        read-only mode.

        Raises:
            ParseError: Content still unreadable (ledger left as is)
        """
        async with self._write_lock:
            ledger = await self._adapter.fetch_ledger(self._handle)
            self._confirmed = ledger
            self._refresh_view()
            self._read_only = False
            self._last_outcome = MutationState.STABLE
        return self._view

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_writable(self, kind: MutationKind) -> None:
        if self._read_only:
            self._audit.log_mutation_rejected(kind.value, "ledger is read-only")
            raise ReadOnlyLedgerError(
                "The stored ledger could not be read; changes are disabled"
            )

    def _build_item(
        self,
        kind: MutationKind,
        data: DraftInput,
        item_id: Optional[str] = None,
    ) -> LedgerItem:
        try:
            draft = self._validator.parse_draft(data)
            if kind == MutationKind.UPDATE and not draft.id:
                raise ValidationError([ValidationIssue(
                    field="id",
                    issue_type="missing",
                    message="An id is required to update an item",
                )])
            return self._validator.build_item(draft, item_id=item_id)
        except ValidationError as e:
            self._audit.log_validation_failed(kind.value, e.to_dicts())
            raise

    def _refresh_view(self) -> None:
        ledger = self._confirmed
        for mutation in self._pending:
            ledger = mutation.apply(ledger)
        self._view = ledger

    def _discard(self, mutation: PendingMutation) -> None:
        self._pending = [m for m in self._pending if m is not mutation]

    def _rollback(self, mutation: PendingMutation, error: BaseException) -> None:
        self._discard(mutation)
        self._refresh_view()
        self._last_outcome = MutationState.ROLLED_BACK
        self._audit.log_mutation_rolled_back(
            mutation.kind.value,
            mutation.item_id,
            error,
            mutation.correlation_id,
        )

    async def _submit(self, mutation: PendingMutation) -> None:
        # Appending and queueing on the lock happen without suspension,
        # so pending order and write order are the same.
        self._pending.append(mutation)
        self._refresh_view()
        self._audit.log_mutation_applied(
            mutation.kind.value,
            mutation.item_id,
            mutation.correlation_id,
        )

        try:
            await self._write_lock.acquire()
        except BaseException as e:
            self._rollback(mutation, e)
            raise

        try:
            # Every earlier mutation has settled, so this one is first in line
            if mutation.kind != MutationKind.ADD and mutation.item_id not in self._confirmed:
                error = ItemNotFoundError(
                    f"Item {mutation.item_id} vanished after an earlier rollback"
                )
                self._rollback(mutation, error)
                raise error

            payload = mutation.apply(self._confirmed)
            try:
                await self._adapter.replace_ledger(self._handle, payload)
            except StorageError as e:
                self._rollback(mutation, e)
                raise MutationFailedError(
                    mutation.kind.value,
                    mutation.item_id,
                    str(e),
                ) from e
            except BaseException as e:
                self._rollback(mutation, e)
                raise

            self._confirmed = payload
            self._discard(mutation)
            self._refresh_view()
            self._last_outcome = MutationState.STABLE
            self._audit.log_write_confirmed(
                mutation.kind.value,
                mutation.item_id,
                len(payload),
                mutation.correlation_id,
            )
        finally:
            self._write_lock.release()
