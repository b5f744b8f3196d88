"""
Tests for the mutation coordinator: optimistic changes, rollback and
serialized writes.
"""

import asyncio
import datetime as dt
from decimal import Decimal

import pytest

from gist_ledger.coordinator import (
    ItemNotFoundError,
    MutationCoordinator,
    MutationFailedError,
    MutationState,
    ReadOnlyLedgerError,
)
from gist_ledger.models.audit import AuditEventType
from gist_ledger.models.ledger import LedgerItemDraft, LedgerSet, TransactionType
from gist_ledger.services.storage import InMemoryDocumentStore, NetworkError
from gist_ledger.services.sync import RemoteSyncAdapter
from gist_ledger.validation import ValidationError


FILENAME = "ledger_data.json"


def remote_ledger(store: InMemoryDocumentStore, handle: str) -> LedgerSet:
    return LedgerSet.from_json(store.raw_content(handle, FILENAME))


def draft(amount="10", category="Dining", **kwargs) -> LedgerItemDraft:
    return LedgerItemDraft(
        date=kwargs.pop("date", dt.date(2024, 3, 15)),
        amount=Decimal(amount),
        category=category,
        **kwargs,
    )


@pytest.fixture
def build(ledger_settings, audit_logger, seed_document):
    """Seed a store and return a coordinator over it."""

    async def _build(store, ledger=None, **kwargs):
        ledger = ledger or LedgerSet.empty()
        handle = await seed_document(store, ledger)
        adapter = RemoteSyncAdapter(store, ledger_settings)
        return handle, MutationCoordinator(
            adapter,
            handle,
            ledger,
            audit_logger=audit_logger,
            **kwargs,
        )

    return _build


class TestSuccessfulMutations:
    """Changes that the store accepts."""

    async def test_add_assigns_fresh_id_and_persists(self, build):
        store = InMemoryDocumentStore()
        handle, coordinator = await build(store)

        item = await coordinator.add(draft(amount="-12.50", remark="noodles"))

        assert item.id
        assert item.amount == Decimal("12.50")
        assert coordinator.ledger.get(item.id) == item
        assert remote_ledger(store, handle) == coordinator.ledger
        assert coordinator.state == MutationState.STABLE

    async def test_add_ignores_supplied_id(self, build, make_item):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store, LedgerSet([make_item("a")]))

        item = await coordinator.add({
            "id": "a",
            "date": "2024-04-01",
            "amount": "3",
            "category": "Transport",
        })

        assert item.id != "a"
        assert len(coordinator.ledger) == 2

    async def test_update_replaces_by_id(self, build, make_item):
        store = InMemoryDocumentStore()
        handle, coordinator = await build(store, LedgerSet([make_item("a"), make_item("b")]))

        await coordinator.update(draft(id="a", amount="42", type=TransactionType.INCOME,
                                       category="Bonus"))

        updated = coordinator.ledger.get("a")
        assert updated.amount == Decimal("42")
        assert updated.type == TransactionType.INCOME
        assert remote_ledger(store, handle) == coordinator.ledger

    async def test_delete_removes_item(self, build, make_item):
        store = InMemoryDocumentStore()
        handle, coordinator = await build(store, LedgerSet([make_item("a"), make_item("b")]))

        await coordinator.delete("a")

        assert coordinator.ledger.ids() == {"b"}
        assert remote_ledger(store, handle).ids() == {"b"}

    async def test_fractional_amount_stored_exactly(self, build):
        store = InMemoryDocumentStore()
        handle, coordinator = await build(store)

        item = await coordinator.add({"amount": "1234.56", "category": "Housing"})

        assert remote_ledger(store, handle).get(item.id).amount == Decimal("1234.56")
        assert remote_ledger(store, handle) == coordinator.ledger

    async def test_change_is_visible_before_write_settles(self, build, scripted_store):
        store = scripted_store(delays=[0.05])
        _, coordinator = await build(store)

        task = asyncio.create_task(coordinator.add(draft()))
        await asyncio.sleep(0.01)

        assert len(coordinator.ledger) == 1
        assert len(coordinator.confirmed_ledger) == 0
        assert coordinator.state == MutationState.PENDING

        await task
        assert coordinator.state == MutationState.STABLE
        assert coordinator.pending_count == 0

    async def test_audit_trail_for_confirmed_write(self, build, audit_logger):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store)

        await coordinator.add(draft())

        types = [e.event_type for e in audit_logger.recent_events()]
        assert types[:2] == [AuditEventType.WRITE_CONFIRMED, AuditEventType.ITEM_ADDED]
        flow = audit_logger.events_for(audit_logger.recent_events(limit=1)[0].correlation_id)
        assert [e.event_type for e in flow] == [
            AuditEventType.ITEM_ADDED,
            AuditEventType.WRITE_CONFIRMED,
        ]


class TestRollback:
    """Failed writes restore the pre-mutation ledger."""

    async def test_failed_add_is_rolled_back(self, build, scripted_store, make_item):
        store = scripted_store(failures=[0])
        before = LedgerSet([make_item("a")])
        handle, coordinator = await build(store, before)

        with pytest.raises(MutationFailedError) as exc_info:
            await coordinator.add(draft())

        assert exc_info.value.kind == "add"
        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert coordinator.ledger == before
        assert remote_ledger(store, handle) == before
        assert coordinator.state == MutationState.ROLLED_BACK

    async def test_failed_update_restores_old_values(self, build, scripted_store, make_item):
        store = scripted_store(failures=[0])
        before = LedgerSet([make_item("a", amount="10")])
        _, coordinator = await build(store, before)

        with pytest.raises(MutationFailedError):
            await coordinator.update(draft(id="a", amount="99"))

        assert coordinator.ledger.get("a").amount == Decimal("10")

    async def test_failed_delete_restores_item(self, build, scripted_store, make_item):
        store = scripted_store(failures=[0])
        before = LedgerSet([make_item("a"), make_item("b")])
        _, coordinator = await build(store, before)

        with pytest.raises(MutationFailedError):
            await coordinator.delete("b")

        assert coordinator.ledger == before
        assert "b" in coordinator.ledger

    async def test_rollback_is_audited(self, build, scripted_store, audit_logger):
        store = scripted_store(failures=[0])
        _, coordinator = await build(store)

        with pytest.raises(MutationFailedError):
            await coordinator.add(draft())

        latest = audit_logger.recent_events(limit=1)[0]
        assert latest.event_type == AuditEventType.MUTATION_ROLLED_BACK
        assert latest.error_type == "NetworkError"

    async def test_next_write_after_rollback_succeeds(self, build, scripted_store):
        store = scripted_store(failures=[0])
        handle, coordinator = await build(store)

        with pytest.raises(MutationFailedError):
            await coordinator.add(draft(category="Transport"))
        item = await coordinator.add(draft(category="Dining"))

        assert coordinator.ledger.ids() == {item.id}
        assert remote_ledger(store, handle) == coordinator.ledger
        assert coordinator.state == MutationState.STABLE


class TestSerializedWrites:
    """Concurrent mutations are written one at a time, in order."""

    async def test_concurrent_adds_both_persist(self, build, scripted_store, make_item):
        store = scripted_store(delays=[0.05, 0.0])
        start = LedgerSet([make_item("s0")])
        handle, coordinator = await build(store, start)

        first, second = await asyncio.gather(
            coordinator.add(draft(category="Dining")),
            coordinator.add(draft(category="Transport")),
        )

        assert store.max_in_flight == 1
        assert coordinator.ledger.ids() == {"s0", first.id, second.id}
        assert remote_ledger(store, handle) == coordinator.ledger

    async def test_failure_of_queued_write_keeps_the_other(self, build, scripted_store):
        store = scripted_store(delays=[0.05, 0.0], failures=[0])
        handle, coordinator = await build(store)

        results = await asyncio.gather(
            coordinator.add(draft(category="Dining")),
            coordinator.add(draft(category="Transport")),
            return_exceptions=True,
        )

        assert isinstance(results[0], MutationFailedError)
        kept = results[1]
        assert coordinator.ledger.ids() == {kept.id}
        assert remote_ledger(store, handle) == coordinator.ledger

    async def test_update_then_delete_of_same_item(self, build, scripted_store, make_item):
        store = scripted_store(delays=[0.03, 0.0])
        handle, coordinator = await build(store, LedgerSet([make_item("a"), make_item("b")]))

        await asyncio.gather(
            coordinator.update(draft(id="a", amount="5")),
            coordinator.delete("a"),
        )

        assert coordinator.ledger.ids() == {"b"}
        assert remote_ledger(store, handle).ids() == {"b"}
        assert store.calls == 2

    async def test_update_of_item_added_by_failed_write(self, build, scripted_store):
        store = scripted_store(delays=[0.05, 0.0], failures=[0])
        _, coordinator = await build(store)

        task = asyncio.create_task(coordinator.add(draft()))
        await asyncio.sleep(0)
        added_id = next(iter(coordinator.ledger.ids()))
        update = asyncio.create_task(coordinator.update(draft(id=added_id, amount="1")))

        with pytest.raises(MutationFailedError):
            await task
        with pytest.raises(ItemNotFoundError):
            await update

        assert len(coordinator.ledger) == 0
        # the dependent update never reached the store
        assert store.calls == 1

    async def test_wait_idle(self, build, scripted_store):
        store = scripted_store(delays=[0.02, 0.02])
        handle, coordinator = await build(store)

        tasks = [
            asyncio.create_task(coordinator.add(draft())),
            asyncio.create_task(coordinator.add(draft())),
        ]
        await asyncio.sleep(0)
        await coordinator.wait_idle()

        assert coordinator.pending_count == 0
        assert len(remote_ledger(store, handle)) == 2
        await asyncio.gather(*tasks)


class TestRejectedMutations:
    """Mutations refused before anything changes."""

    async def test_validation_failure_changes_nothing(self, build, audit_logger):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store)

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.add({"amount": "12", "category": ""})

        assert exc_info.value.issues[0].field == "category"
        assert len(coordinator.ledger) == 0
        assert store.write_count == 0
        latest = audit_logger.recent_events(limit=1)[0]
        assert latest.event_type == AuditEventType.VALIDATION_FAILED

    async def test_over_precise_amount_rejected_before_write(self, build):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store)

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.add({"amount": "0.1234567890123456789", "category": "Dining"})

        assert exc_info.value.issues[0].field == "amount"
        assert len(coordinator.ledger) == 0
        assert store.write_count == 0

    async def test_non_numeric_amount_rejected(self, build):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store)

        with pytest.raises(ValidationError):
            await coordinator.add({"amount": "twelve", "category": "Dining"})
        assert store.write_count == 0

    async def test_update_requires_id(self, build):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store)

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.update(draft())
        assert exc_info.value.issues[0].field == "id"

    async def test_unknown_ids(self, build, make_item):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store, LedgerSet([make_item("a")]))

        with pytest.raises(ItemNotFoundError):
            await coordinator.update(draft(id="missing"))
        with pytest.raises(ItemNotFoundError):
            await coordinator.delete("missing")
        assert store.write_count == 0

    async def test_read_only_rejects_everything(self, build, make_item):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store, LedgerSet([make_item("a")]), read_only=True)

        with pytest.raises(ReadOnlyLedgerError):
            await coordinator.add(draft())
        with pytest.raises(ReadOnlyLedgerError):
            await coordinator.update(draft(id="a"))
        with pytest.raises(ReadOnlyLedgerError):
            await coordinator.delete("a")
        assert store.write_count == 0


class TestReload:
    """Re-reading the document."""

    async def test_reload_picks_up_remote_content(self, build, ledger_settings, make_item):
        store = InMemoryDocumentStore()
        handle, coordinator = await build(store)
        await store.replace_document_content(
            handle,
            ledger_settings.data_filename,
            LedgerSet([make_item("x")]).to_json(),
        )

        ledger = await coordinator.reload()

        assert ledger.ids() == {"x"}
        assert coordinator.confirmed_ledger.ids() == {"x"}

    async def test_reload_lifts_read_only(self, build):
        store = InMemoryDocumentStore()
        _, coordinator = await build(store, read_only=True)

        await coordinator.reload()

        assert coordinator.read_only is False
        await coordinator.add(draft())
        assert len(coordinator.ledger) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
