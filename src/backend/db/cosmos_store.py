"""
Cosmos DB document store.

Maps each game collection onto a Cosmos container partitioned by /game_id,
so every per-game read is a single-partition query. Cosmos has no push
notifications for deletes, so subscriptions re-query their target on a
fixed interval and deliver a snapshot only when it changed.
"""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Optional

from azure.cosmos import exceptions as cosmos_exceptions

from core.config import settings
from core.exceptions import DocumentNotFoundError, StoreFailureError
from core.ids import generate_id
from db.cosmos_session import (
    close_cosmos,
    delete_item,
    patch_item,
    query_items,
    read_item,
    upsert_item,
)
from db.store import (
    CollectionCallback,
    CollectionQuery,
    DocumentCallback,
    DocumentStore,
    Subscription,
)

logger = logging.getLogger(__name__)

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_UNSET = object()


def strip_system_properties(item: dict[str, Any]) -> dict[str, Any]:
    """Drop Cosmos bookkeeping fields (_rid, _etag, _ts, ...)."""
    return {k: v for k, v in item.items() if not k.startswith("_")}


def build_collection_query(query: Optional[CollectionQuery]) -> str:
    """Build the SQL for a per-game collection read."""
    sql = "SELECT * FROM c WHERE c.game_id = @game_id"
    if query is None:
        return sql
    if query.order_by:
        if not _FIELD_NAME.match(query.order_by):
            raise ValueError(f"Invalid order_by field: {query.order_by!r}")
        direction = "DESC" if query.descending else "ASC"
        sql += f" ORDER BY c[{json.dumps(query.order_by)}] {direction}"
    if query.limit is not None:
        sql += f" OFFSET 0 LIMIT {int(query.limit)}"
    return sql


class CosmosDocumentStore(DocumentStore):
    """Document store backed by Azure Cosmos DB."""

    def __init__(self, poll_interval_ms: Optional[int] = None) -> None:
        interval = settings.SUBSCRIPTION_POLL_INTERVAL_MS if poll_interval_ms is None else poll_interval_ms
        self.poll_interval = interval / 1000
        self._tasks: set[asyncio.Task] = set()

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get(self, collection: str, game_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        try:
            item = await read_item(collection, doc_id, partition_key=game_id)
        except cosmos_exceptions.CosmosHttpResponseError as e:
            raise StoreFailureError("get", collection, str(e)) from e
        return strip_system_properties(item) if item is not None else None

    async def read_collection(
        self,
        collection: str,
        game_id: str,
        query: Optional[CollectionQuery] = None,
    ) -> list[dict[str, Any]]:
        try:
            items = await query_items(
                collection,
                build_collection_query(query),
                parameters=[{"name": "@game_id", "value": game_id}],
                partition_key=game_id,
            )
        except cosmos_exceptions.CosmosHttpResponseError as e:
            raise StoreFailureError("read", collection, str(e)) from e
        return [strip_system_properties(item) for item in items]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def set(self, collection: str, game_id: str, doc_id: str, data: dict[str, Any]) -> None:
        item = {**data, "id": doc_id, "game_id": game_id}
        try:
            await upsert_item(collection, item)
        except cosmos_exceptions.CosmosHttpResponseError as e:
            raise StoreFailureError("set", collection, str(e)) from e
        logger.debug(f"Set {collection}/{doc_id} in game {game_id}")

    async def update(self, collection: str, game_id: str, doc_id: str, changes: dict[str, Any]) -> None:
        try:
            await patch_item(collection, doc_id, partition_key=game_id, changes=changes)
        except cosmos_exceptions.CosmosResourceNotFoundError as e:
            raise DocumentNotFoundError(collection, doc_id) from e
        except cosmos_exceptions.CosmosHttpResponseError as e:
            raise StoreFailureError("update", collection, str(e)) from e

    async def delete(self, collection: str, game_id: str, doc_id: str) -> None:
        try:
            await delete_item(collection, doc_id, partition_key=game_id)
        except cosmos_exceptions.CosmosHttpResponseError as e:
            raise StoreFailureError("delete", collection, str(e)) from e

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
        return self._start_listener(
            lambda: self.get(collection, game_id, doc_id),
            callback,
            empty=None,
            label=f"{collection}/{doc_id} in game {game_id}",
        )

    async def subscribe_collection(
        self,
        collection: str,
        game_id: str,
        callback: CollectionCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        return self._start_listener(
            lambda: self.read_collection(collection, game_id, query),
            callback,
            empty=[],
            label=f"{collection} in game {game_id}",
        )

    def _start_listener(
        self,
        fetch: Callable[[], Awaitable[Any]],
        callback: Callable[[Any], None],
        empty: Any,
        label: str,
    ) -> Subscription:
        task = asyncio.create_task(self._poll(fetch, callback, empty, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return Subscription(task.cancel)

    async def _poll(
        self,
        fetch: Callable[[], Awaitable[Any]],
        callback: Callable[[Any], None],
        empty: Any,
        label: str,
    ) -> None:
        last: Any = _UNSET
        while True:
            try:
                snapshot = await fetch()
            except Exception as e:
                logger.error(f"Error listening to {label}: {e}")
                snapshot = empty

            if snapshot != last:
                last = snapshot
                try:
                    callback(snapshot)
                except Exception:
                    logger.exception(f"Listener on {label} raised while handling a snapshot")

            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await close_cosmos()
