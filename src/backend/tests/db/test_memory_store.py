"""
Tests for the in-memory document store.
"""

import pytest

from core.exceptions import DocumentNotFoundError, StoreFailureError
from db.memory_store import InMemoryDocumentStore
from db.store import CollectionQuery, Subscription, apply_query


@pytest.mark.unit
class TestMemoryStoreCrud:
    """Test point and collection operations."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, store: InMemoryDocumentStore) -> None:
        await store.set("issues", "g1", "i1", {"game_id": "g1", "title": "Login"})

        doc = await store.get("issues", "g1", "i1")

        assert doc == {"game_id": "g1", "title": "Login", "id": "i1"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: InMemoryDocumentStore) -> None:
        assert await store.get("issues", "g1", "nope") is None

    @pytest.mark.asyncio
    async def test_documents_are_copied(self, store: InMemoryDocumentStore) -> None:
        """Mutating a returned dict must not change the stored document."""
        data = {"game_id": "g1", "tags": ["a"]}
        await store.set("issues", "g1", "i1", data)
        data["tags"].append("b")

        doc = await store.get("issues", "g1", "i1")
        doc["tags"].append("c")

        assert (await store.get("issues", "g1", "i1"))["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, store: InMemoryDocumentStore) -> None:
        await store.set("sessions", "g1", "g1", {"game_id": "g1", "votes_revealed": False, "name": "x"})

        await store.update("sessions", "g1", "g1", {"votes_revealed": True})

        doc = await store.get("sessions", "g1", "g1")
        assert doc["votes_revealed"] is True
        assert doc["name"] == "x"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: InMemoryDocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await store.update("sessions", "g1", "g1", {"votes_revealed": True})

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store: InMemoryDocumentStore) -> None:
        await store.delete("votes", "g1", "p1")
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_add_generates_id(self, store: InMemoryDocumentStore) -> None:
        doc_id = await store.add("reactions", "g1", {"game_id": "g1", "emoji": "🎉"})

        assert len(doc_id) == 21
        assert (await store.get("reactions", "g1", doc_id))["emoji"] == "🎉"

    @pytest.mark.asyncio
    async def test_games_are_isolated(self, store: InMemoryDocumentStore) -> None:
        await store.set("votes", "g1", "p1", {"value": "3"})
        await store.set("votes", "g2", "p1", {"value": "8"})

        assert [d["value"] for d in await store.read_collection("votes", "g1")] == ["3"]

    @pytest.mark.asyncio
    async def test_read_collection_with_query(self, store: InMemoryDocumentStore) -> None:
        for i, ts in enumerate([30, 10, 20]):
            await store.set("reactions", "g1", f"r{i}", {"timestamp": ts})

        docs = await store.read_collection(
            "reactions", "g1", CollectionQuery(order_by="timestamp", descending=True, limit=2)
        )

        assert [d["timestamp"] for d in docs] == [30, 20]

    @pytest.mark.asyncio
    async def test_delete_all_returns_count(self, store: InMemoryDocumentStore) -> None:
        for pid in ("p1", "p2", "p3"):
            await store.set("votes", "g1", pid, {"value": "5"})

        assert await store.delete_all("votes", "g1") == 3
        assert await store.read_collection("votes", "g1") == []

    @pytest.mark.asyncio
    async def test_delete_all_partial_failure(self, store: InMemoryDocumentStore) -> None:
        """A failed delete leaves survivors behind and reports them."""
        for pid in ("p1", "p2", "p3"):
            await store.set("votes", "g1", pid, {"value": "5"})
        store.fail_next("delete", "votes")

        with pytest.raises(StoreFailureError) as exc_info:
            await store.delete_all("votes", "g1")

        assert "1 of 3" in str(exc_info.value)
        assert len(await store.read_collection("votes", "g1")) == 1

        # Retrying finishes the wipe
        assert await store.delete_all("votes", "g1") == 1


@pytest.mark.unit
class TestMemoryStoreSubscriptions:
    """Test change notifications."""

    @pytest.mark.asyncio
    async def test_document_listener_gets_initial_and_updates(self, store: InMemoryDocumentStore) -> None:
        received = []
        await store.subscribe_document("sessions", "g1", "g1", received.append)

        await store.set("sessions", "g1", "g1", {"votes_revealed": False})
        await store.update("sessions", "g1", "g1", {"votes_revealed": True})

        assert received[0] is None
        assert [s["votes_revealed"] for s in received[1:]] == [False, True]

    @pytest.mark.asyncio
    async def test_collection_listener_receives_whole_snapshots(self, store: InMemoryDocumentStore) -> None:
        received = []
        await store.subscribe_collection("votes", "g1", received.append)

        await store.set("votes", "g1", "p1", {"value": "3"})
        await store.set("votes", "g1", "p2", {"value": "5"})
        await store.delete("votes", "g1", "p1")

        assert [len(s) for s in received] == [0, 1, 2, 1]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, store: InMemoryDocumentStore) -> None:
        received = []
        sub = await store.subscribe_collection("votes", "g1", received.append)

        sub()
        sub.unsubscribe()  # second dispose is a no-op
        await store.set("votes", "g1", "p1", {"value": "3"})

        assert len(received) == 1
        assert not sub.active
        assert store.listener_count() == 0

    @pytest.mark.asyncio
    async def test_listen_failure_degrades_to_empty_snapshot(self, store: InMemoryDocumentStore) -> None:
        received = []
        await store.set("votes", "g1", "p1", {"value": "3"})
        await store.subscribe_collection("votes", "g1", received.append)
        store.fail_next("listen", "votes")

        await store.set("votes", "g1", "p2", {"value": "5"})

        assert received[-1] == []

    @pytest.mark.asyncio
    async def test_broken_listener_does_not_fail_write(self, store: InMemoryDocumentStore) -> None:
        def explode(snapshot):
            if snapshot:
                raise RuntimeError("boom")

        await store.subscribe_collection("votes", "g1", explode)

        await store.set("votes", "g1", "p1", {"value": "3"})

        assert len(await store.read_collection("votes", "g1")) == 1

    @pytest.mark.asyncio
    async def test_close_drops_listeners(self, store: InMemoryDocumentStore) -> None:
        await store.subscribe_collection("votes", "g1", lambda s: None)
        await store.close()
        assert store.listener_count() == 0


@pytest.mark.unit
class TestStoreHelpers:
    """Test shared store helpers."""

    def test_apply_query_puts_missing_fields_last(self) -> None:
        docs = [{"order": 2}, {}, {"order": 1}]

        result = apply_query(docs, CollectionQuery(order_by="order"))

        assert result == [{"order": 1}, {"order": 2}, {}]

    def test_apply_query_descending_keeps_missing_fields_last(self) -> None:
        docs = [{"timestamp": 1}, {}, {"timestamp": 3}, {"timestamp": None}]

        result = apply_query(docs, CollectionQuery(order_by="timestamp", descending=True, limit=3))

        assert result == [{"timestamp": 3}, {"timestamp": 1}, {}]

    def test_subscription_without_disposer(self) -> None:
        sub = Subscription()
        sub()
        assert not sub.active
