"""
In-memory document store.

Process-local implementation of the document store used for local play,
demos and tests. Documents are deep-copied in and out so callers never
share mutable state with the store. Listeners receive an initial snapshot
on subscribe and a fresh snapshot after every mutation of what they watch.
"""

import copy
import logging
from collections import defaultdict
from typing import Any, Optional

from core.exceptions import DocumentNotFoundError, StoreFailureError
from core.ids import generate_id
from db.store import (
    CollectionCallback,
    CollectionQuery,
    DocumentCallback,
    DocumentStore,
    Subscription,
    apply_query,
)

logger = logging.getLogger(__name__)

LISTEN_OPERATION = "listen"


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store with synchronous change fan-out.

    Fault injection:
        store.fail_next("delete", "votes", count=2)
    makes the next two deletes on the votes collection raise
    StoreFailureError. The "listen" operation makes the next delivery to
    that collection's listeners fail, which degrades to an empty snapshot.
    """

    def __init__(self) -> None:
        # collection -> game_id -> doc_id -> document
        self._data: dict[str, dict[str, dict[str, dict[str, Any]]]] = defaultdict(
            lambda: defaultdict(dict)
        )
        self._doc_listeners: dict[tuple[str, str, str], list[DocumentCallback]] = defaultdict(list)
        self._collection_listeners: dict[
            tuple[str, str], list[tuple[CollectionCallback, Optional[CollectionQuery]]]
        ] = defaultdict(list)
        self._failures: dict[tuple[str, Optional[str]], int] = {}
        self.write_count = 0

    # ========================================================================
    # Fault injection
    # ========================================================================

    def fail_next(self, operation: str, collection: Optional[str] = None, count: int = 1) -> None:
        """Make the next `count` calls of `operation` fail."""
        self._failures[(operation, collection)] = count

    def _check_failure(self, operation: str, collection: str) -> None:
        if self._consume_failure(operation, collection):
            raise StoreFailureError(operation, collection, "injected failure")

    def _consume_failure(self, operation: str, collection: str) -> bool:
        for key in ((operation, collection), (operation, None)):
            remaining = self._failures.get(key, 0)
            if remaining > 0:
                if remaining == 1:
                    del self._failures[key]
                else:
                    self._failures[key] = remaining - 1
                return True
        return False

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get(self, collection: str, game_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        self._check_failure("get", collection)
        doc = self._data[collection][game_id].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def read_collection(
        self,
        collection: str,
        game_id: str,
        query: Optional[CollectionQuery] = None,
    ) -> list[dict[str, Any]]:
        self._check_failure("read", collection)
        return self._snapshot(collection, game_id, query)

    def _snapshot(
        self,
        collection: str,
        game_id: str,
        query: Optional[CollectionQuery] = None,
    ) -> list[dict[str, Any]]:
        docs = [copy.deepcopy(d) for d in self._data[collection][game_id].values()]
        return apply_query(docs, query)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def set(self, collection: str, game_id: str, doc_id: str, data: dict[str, Any]) -> None:
        self._check_failure("set", collection)
        doc = copy.deepcopy(data)
        doc["id"] = doc_id
        self._data[collection][game_id][doc_id] = doc
        self.write_count += 1
        self._notify(collection, game_id, doc_id)

    async def update(self, collection: str, game_id: str, doc_id: str, changes: dict[str, Any]) -> None:
        self._check_failure("update", collection)
        doc = self._data[collection][game_id].get(doc_id)
        if doc is None:
            raise DocumentNotFoundError(collection, doc_id)
        doc.update(copy.deepcopy(changes))
        self.write_count += 1
        self._notify(collection, game_id, doc_id)

    async def delete(self, collection: str, game_id: str, doc_id: str) -> None:
        self._check_failure("delete", collection)
        if self._data[collection][game_id].pop(doc_id, None) is not None:
            self.write_count += 1
            self._notify(collection, game_id, doc_id)

    async def add(self, collection: str, game_id: str, data: dict[str, Any]) -> str:
        doc_id = generate_id()
        await self.set(collection, game_id, doc_id, data)
        return doc_id

    # ========================================================================
    # Subscriptions
    # ========================================================================

    async def subscribe_document(
        self,
        collection: str,
        game_id: str,
        doc_id: str,
        callback: DocumentCallback,
    ) -> Subscription:
        key = (collection, game_id, doc_id)
        self._doc_listeners[key].append(callback)
        self._deliver_document(collection, game_id, doc_id, callback)

        def dispose() -> None:
            listeners = self._doc_listeners.get(key, [])
            if callback in listeners:
                listeners.remove(callback)

        return Subscription(dispose)

    async def subscribe_collection(
        self,
        collection: str,
        game_id: str,
        callback: CollectionCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        key = (collection, game_id)
        entry = (callback, query)
        self._collection_listeners[key].append(entry)
        self._deliver_collection(collection, game_id, callback, query)

        def dispose() -> None:
            listeners = self._collection_listeners.get(key, [])
            if entry in listeners:
                listeners.remove(entry)

        return Subscription(dispose)

    def listener_count(self) -> int:
        """Number of live listeners across all targets."""
        return sum(len(v) for v in self._doc_listeners.values()) + sum(
            len(v) for v in self._collection_listeners.values()
        )

    def _notify(self, collection: str, game_id: str, doc_id: str) -> None:
        for callback in list(self._doc_listeners.get((collection, game_id, doc_id), [])):
            self._deliver_document(collection, game_id, doc_id, callback)
        for callback, query in list(self._collection_listeners.get((collection, game_id), [])):
            self._deliver_collection(collection, game_id, callback, query)

    def _deliver_document(
        self,
        collection: str,
        game_id: str,
        doc_id: str,
        callback: DocumentCallback,
    ) -> None:
        if self._consume_failure(LISTEN_OPERATION, collection):
            logger.error(f"Error listening to {collection}/{doc_id} in game {game_id}: injected failure")
            snapshot = None
        else:
            doc = self._data[collection][game_id].get(doc_id)
            snapshot = copy.deepcopy(doc) if doc is not None else None
        self._invoke(callback, snapshot, collection)

    def _deliver_collection(
        self,
        collection: str,
        game_id: str,
        callback: CollectionCallback,
        query: Optional[CollectionQuery],
    ) -> None:
        if self._consume_failure(LISTEN_OPERATION, collection):
            logger.error(f"Error listening to {collection} in game {game_id}: injected failure")
            snapshot: list[dict[str, Any]] = []
        else:
            snapshot = self._snapshot(collection, game_id, query)
        self._invoke(callback, snapshot, collection)

    @staticmethod
    def _invoke(callback: Any, snapshot: Any, collection: str) -> None:
        # A broken listener must not fail the write that triggered it
        try:
            callback(snapshot)
        except Exception:
            logger.exception(f"Listener on {collection} raised while handling a snapshot")

    async def close(self) -> None:
        self._doc_listeners.clear()
        self._collection_listeners.clear()
