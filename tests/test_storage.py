"""Tests for the key-value mirror backends, the local mirror and the in-memory remote store."""

import asyncio

import pytest

from budget_planner.models.records import Identity
from budget_planner.services.storage import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    InMemoryRemoteStore,
    LocalMirror,
    MemoryStorageArea,
    MirrorKey,
    PersistenceError,
    RemoteDocument,
    sort_documents,
)
from tests.factories import make_budget, make_transaction, settle


class TestInMemoryKeyValueStore:

    def test_writes_are_visible_to_other_handles(self, area):
        first = InMemoryKeyValueStore(area)
        second = InMemoryKeyValueStore(area)
        first.set("k", "v")
        assert second.get("k") == "v"

    def test_change_events_reach_other_handles_only(self, area):
        first = InMemoryKeyValueStore(area)
        second = InMemoryKeyValueStore(area)
        seen_first, seen_second = [], []
        first.subscribe(lambda k, v: seen_first.append((k, v)))
        second.subscribe(lambda k, v: seen_second.append((k, v)))

        first.set("k", "v")
        first.remove("k")

        assert seen_first == []
        assert seen_second == [("k", "v"), ("k", None)]

    def test_unchanged_value_raises_no_event(self, area):
        first = InMemoryKeyValueStore(area)
        second = InMemoryKeyValueStore(area)
        seen = []
        second.subscribe(lambda k, v: seen.append(k))

        first.set("k", "v")
        first.set("k", "v")

        assert seen == ["k"]


class TestFileKeyValueStore:

    def test_set_get_remove(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        assert store.get("bp_budgets_v1") is None
        store.set("bp_budgets_v1", "[]")
        assert (tmp_path / "bp_budgets_v1.json").read_text(encoding="utf-8") == "[]"
        store.remove("bp_budgets_v1")
        assert store.get("bp_budgets_v1") is None

    def test_rejects_unsafe_keys(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        with pytest.raises(PersistenceError):
            store.set("../escape", "x")

    def test_poll_detects_writes_from_another_process(self, tmp_path):
        ours = FileKeyValueStore(tmp_path)
        theirs = FileKeyValueStore(tmp_path)
        seen = []
        ours.subscribe(lambda k, v: seen.append((k, v)))

        ours.set("k", "1")
        assert ours.poll_changes() == []

        theirs.set("k", "2")
        assert ours.poll_changes() == ["k"]
        assert seen == [("k", "2")]
        assert ours.poll_changes() == []

    @pytest.mark.asyncio
    async def test_watcher_polls_in_background(self, tmp_path):
        ours = FileKeyValueStore(tmp_path)
        theirs = FileKeyValueStore(tmp_path)
        seen = []
        ours.subscribe(lambda k, v: seen.append(k))

        ours.start_watching(0.01)
        theirs.set("k", "1")
        await asyncio.sleep(0.05)
        ours.stop_watching()

        assert seen == ["k"]


class TestLocalMirror:

    def test_save_and_load(self, mirror):
        transactions = [make_transaction(), make_transaction(amount="7")]
        budgets = [make_budget()]
        mirror.save(transactions, budgets, ["Books"])

        assert mirror.load_transactions() == transactions
        assert mirror.load_budgets() == budgets
        assert mirror.load_categories() == ["Books"]

    def test_absent_keys_load_empty(self, mirror):
        assert mirror.load_transactions() == []
        assert mirror.load_budgets() == []
        assert mirror.load_categories() == []

    def test_corrupt_value_raises_persistence_error(self, mirror, kv_store):
        kv_store.set("bp_transactions_v1", "{not json")
        with pytest.raises(PersistenceError):
            mirror.load_transactions()

    def test_unsupported_shape_raises_persistence_error(self, mirror, kv_store):
        kv_store.set("bp_budgets_v1", '[{"scope": "weekly"}]')
        with pytest.raises(PersistenceError):
            mirror.load_budgets()

    def test_custom_key_names(self, kv_store):
        mirror = LocalMirror(kv_store, transactions_key="tx", budgets_key="bu", categories_key="ca")
        mirror.save([], [], ["Pets"])
        assert kv_store.get("ca") == '["Pets"]'
        assert mirror.resolve_key("bu") == MirrorKey.BUDGETS
        assert mirror.resolve_key("bp_budgets_v1") is None

    def test_external_change_relays_logical_key(self, area, mirror):
        other_tab = InMemoryKeyValueStore(area)
        seen = []
        mirror.on_external_change(seen.append)

        other_tab.set("bp_budgets_v1", "[]")
        other_tab.set("unrelated", "x")

        assert seen == [MirrorKey.BUDGETS]


class TestInMemoryRemoteStore:

    @pytest.fixture
    def user(self):
        return Identity(uid="u1")

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, remote, user):
        doc_id = await remote.create(user, "transactions", {"amount": "5"})
        documents = await remote.get_all(user, "transactions")
        assert documents == [RemoteDocument(id=doc_id, data={"amount": "5"})]

    @pytest.mark.asyncio
    async def test_partitions_by_identity(self, remote, user):
        await remote.create(user, "budgets", {"limit": "5"})
        assert await remote.get_all(Identity(uid="u2"), "budgets") == []

    @pytest.mark.asyncio
    async def test_set_upserts_and_delete_is_idempotent(self, remote, user):
        await remote.set(user, "budgets", "b1", {"limit": "5"})
        await remote.set(user, "budgets", "b1", {"limit": "6"})
        await remote.delete(user, "budgets", "b1")
        await remote.delete(user, "budgets", "b1")
        assert await remote.get_all(user, "budgets") == []

    @pytest.mark.asyncio
    async def test_subscription_delivers_initial_and_changes(self, remote, user):
        snapshots = []
        remote.subscribe(user, "transactions", snapshots.append)
        await settle()
        assert snapshots == [[]]

        await remote.create(user, "transactions", {"date": "2024-01-01"})
        # delivery happens on the loop, never inside the write
        assert len(snapshots) == 1
        await settle()
        assert len(snapshots) == 2
        assert len(snapshots[-1]) == 1

    @pytest.mark.asyncio
    async def test_cancelled_subscription_receives_nothing(self, remote, user):
        snapshots = []
        subscription = remote.subscribe(user, "transactions", snapshots.append)
        subscription.cancel()
        subscription.cancel()
        await remote.create(user, "transactions", {})
        await settle()
        assert snapshots == []
        assert remote.watcher_count(user) == 0

    @pytest.mark.asyncio
    async def test_snapshot_callback_failure_goes_to_on_error(self, remote, user):
        errors = []

        def broken(_documents):
            raise RuntimeError("boom")

        remote.subscribe(user, "budgets", broken, on_error=errors.append)
        await settle()
        assert len(errors) == 1


def test_sort_documents_by_field():
    documents = [
        RemoteDocument(id="a", data={"date": "2024-01-02"}),
        RemoteDocument(id="b", data={}),
        RemoteDocument(id="c", data={"date": "2024-03-01"}),
    ]
    ordered = sort_documents(documents, "date", descending=True)
    assert [d.id for d in ordered] == ["c", "a", "b"]
    assert sort_documents(documents, None) == documents
