"""Tests for the sync coordinator (identity state machine and subscriptions)."""

from datetime import date
from typing import Optional

import pytest

from budget_planner.models.records import Identity, RemoteId, record_payload
from budget_planner.services.notifications import IdentityProvider, Severity
from budget_planner.services.storage import InMemoryRemoteStore
from budget_planner.store import RecordStore
from budget_planner.sync import (
    BackendMode,
    IdentityState,
    PersistenceBackend,
    SyncCoordinator,
    SyncUnavailableError,
)
from tests.factories import make_budget, make_transaction, settle


class CapturingRemoteStore(InMemoryRemoteStore):
    """Remote store that hands the test the snapshot callbacks instead of calling them."""

    def __init__(self):
        super().__init__()
        self.callbacks = []

    def subscribe(self, identity, collection, on_snapshot, on_error=None, order_by=None, descending=False):
        self.callbacks.append((collection, on_snapshot, on_error))
        return super().subscribe(identity, collection, lambda docs: None, None, order_by, descending)


class StaticProvider(IdentityProvider):
    def __init__(self, identity: Optional[Identity]):
        self.identity = identity
        self.prompts = 0

    async def prompt_identity(self) -> Optional[Identity]:
        self.prompts += 1
        return self.identity


@pytest.fixture
def store():
    return RecordStore()


def build(store, mirror, remote, notifier):
    backend = PersistenceBackend(store, mirror, remote=remote, notifier=notifier)
    backend.attach()
    return backend, SyncCoordinator(store, backend, notifier=notifier)


class TestSignIn:

    @pytest.mark.asyncio
    async def test_sign_in_without_remote_store(self, store, mirror, notifier, identity):
        _, coordinator = build(store, mirror, None, notifier)
        with pytest.raises(SyncUnavailableError):
            coordinator.sign_in(identity)
        assert coordinator.state == IdentityState.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_first_snapshot_replaces_local_contents(
        self, store, mirror, remote, notifier, identity
    ):
        backend, coordinator = build(store, mirror, remote, notifier)
        store.upsert_local(make_transaction(note="local only"))
        remote_tx = make_transaction(note="from remote")
        await remote.set(identity, "transactions", "doc-1", record_payload(remote_tx))

        coordinator.sign_in(identity)
        assert backend.mode == BackendMode.REMOTE
        await settle()

        assert [t.note for t in store.transactions] == ["from remote"]
        assert store.transactions[0].id == RemoteId(value="doc-1")
        # snapshots are mirrored locally
        assert mirror.load_transactions() == store.transactions

    @pytest.mark.asyncio
    async def test_transactions_arrive_newest_first(self, store, mirror, remote, notifier, identity):
        _, coordinator = build(store, mirror, remote, notifier)
        for doc_id, day in (("a", date(2024, 1, 5)), ("b", date(2024, 3, 1)), ("c", date(2024, 2, 1))):
            await remote.set(identity, "transactions", doc_id, record_payload(make_transaction(day=day)))

        coordinator.sign_in(identity)
        await settle()

        assert [t.id.value for t in store.transactions] == ["b", "c", "a"]

    @pytest.mark.asyncio
    async def test_exactly_two_subscriptions(self, store, mirror, remote, notifier, identity):
        _, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_in(identity)
        coordinator.sign_in(identity)

        assert remote.watcher_count(identity) == 2
        assert coordinator.active_subscriptions == 2

    @pytest.mark.asyncio
    async def test_switching_identity_replaces_subscriptions(
        self, store, mirror, remote, notifier, identity
    ):
        _, coordinator = build(store, mirror, remote, notifier)
        other = Identity(uid="user-2")
        await remote.set(other, "budgets", "b1", record_payload(make_budget()))

        coordinator.sign_in(identity)
        coordinator.sign_in(other)
        await settle()

        assert remote.watcher_count(identity) == 0
        assert remote.watcher_count(other) == 2
        assert [b.id.value for b in store.budgets] == ["b1"]

    @pytest.mark.asyncio
    async def test_invalid_documents_are_skipped(self, store, mirror, remote, notifier, identity):
        _, coordinator = build(store, mirror, remote, notifier)
        await remote.set(identity, "budgets", "good", record_payload(make_budget()))
        await remote.set(identity, "budgets", "bad", {"scope": "weekly"})

        coordinator.sign_in(identity)
        await settle()

        assert [b.id.value for b in store.budgets] == ["good"]

    @pytest.mark.asyncio
    async def test_request_sign_in(self, store, mirror, remote, notifier, identity):
        _, coordinator = build(store, mirror, remote, notifier)

        assert await coordinator.request_sign_in(StaticProvider(None)) is None
        assert coordinator.is_signed_in is False

        assert await coordinator.request_sign_in(StaticProvider(identity)) == identity
        assert coordinator.identity == identity


class TestSignOut:

    @pytest.mark.asyncio
    async def test_sign_out_cancels_and_reloads_mirror(
        self, store, mirror, remote, notifier, identity
    ):
        backend, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_in(identity)
        await settle()
        mirrored = make_transaction(note="mirrored")
        mirror.save([mirrored], [], [])

        coordinator.sign_out()

        assert remote.watcher_count(identity) == 0
        assert backend.mode == BackendMode.LOCAL
        assert coordinator.state == IdentityState.SIGNED_OUT
        assert store.transactions == [mirrored]

    @pytest.mark.asyncio
    async def test_sign_out_is_idempotent(self, store, mirror, remote, notifier):
        _, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_out()
        assert coordinator.state == IdentityState.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_stale_snapshot_after_sign_out_is_dropped(self, store, mirror, notifier, identity):
        remote = CapturingRemoteStore()
        _, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_in(identity)
        coordinator.sign_out()

        collection, on_snapshot, _ = remote.callbacks[0]
        assert collection == "transactions"
        await remote.set(identity, "transactions", "late", record_payload(make_transaction()))
        on_snapshot(await remote.get_all(identity, "transactions"))

        assert store.transactions == []

    @pytest.mark.asyncio
    async def test_snapshot_from_previous_identity_is_dropped(self, store, mirror, notifier, identity):
        remote = CapturingRemoteStore()
        _, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_in(identity)
        coordinator.sign_in(Identity(uid="user-2"))

        _, stale_callback, _ = remote.callbacks[0]
        await remote.set(identity, "transactions", "old", record_payload(make_transaction()))
        stale_callback(await remote.get_all(identity, "transactions"))

        assert store.transactions == []

    @pytest.mark.asyncio
    async def test_subscription_error_is_surfaced(self, store, mirror, notifier, identity):
        remote = CapturingRemoteStore()
        _, coordinator = build(store, mirror, remote, notifier)
        coordinator.sign_in(identity)

        _, _, on_error = remote.callbacks[1]
        on_error(RuntimeError("permission denied"))

        assert notifier.notices[-1] == (
            "Sync error (budgets): permission denied",
            Severity.WARNING,
        )
