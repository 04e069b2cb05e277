"""
Document store adapter interface.

Every game lives in the store as a root `sessions` document plus child
collections. Documents are addressed by (collection, game_id, doc_id);
for the `sessions` collection the doc id is the game id itself.

Subscriptions deliver whole snapshots (never deltas) to a synchronous
callback. A failed subscription query is logged and delivered as an empty
snapshot instead of raising, so consumers must treat every snapshot as
possibly stale and be idempotent under re-delivery.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from core.exceptions import StoreFailureError

logger = logging.getLogger(__name__)

# Collection names
SESSIONS_COLLECTION = "sessions"
PARTICIPANTS_COLLECTION = "participants"
VOTES_COLLECTION = "votes"
ISSUES_COLLECTION = "issues"
REACTIONS_COLLECTION = "reactions"

ALL_COLLECTIONS = (
    SESSIONS_COLLECTION,
    PARTICIPANTS_COLLECTION,
    VOTES_COLLECTION,
    ISSUES_COLLECTION,
    REACTIONS_COLLECTION,
)

DocumentCallback = Callable[[Optional[dict[str, Any]]], None]
CollectionCallback = Callable[[list[dict[str, Any]]], None]


@dataclass(frozen=True)
class CollectionQuery:
    """Ordering and cap applied to a collection read or subscription."""

    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


class Subscription:
    """
    Handle for an active listener.

    Calling the handle (or `unsubscribe()`) disposes it; disposing twice
    is a no-op.
    """

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None):
        self._on_dispose = on_dispose
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_dispose is not None:
            self._on_dispose()

    def __call__(self) -> None:
        self.unsubscribe()


def apply_query(docs: list[dict[str, Any]], query: Optional[CollectionQuery]) -> list[dict[str, Any]]:
    """Sort and cap raw documents the way the store would."""
    if query is None:
        return docs
    result = docs
    if query.order_by:
        field = query.order_by
        # Documents without the field go last in either direction
        present = [d for d in result if d.get(field) is not None]
        missing = [d for d in result if d.get(field) is None]
        result = sorted(present, key=lambda d: d[field], reverse=query.descending) + missing
    if query.limit is not None:
        result = result[: query.limit]
    return result


class DocumentStore(ABC):
    """Shared document store with change notifications."""

    @abstractmethod
    async def set(self, collection: str, game_id: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""

    @abstractmethod
    async def update(self, collection: str, game_id: str, doc_id: str, changes: dict[str, Any]) -> None:
        """
        Partially update a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abstractmethod
    async def get(self, collection: str, game_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Point read. Returns None if the document does not exist."""

    @abstractmethod
    async def delete(self, collection: str, game_id: str, doc_id: str) -> None:
        """Point delete. Deleting a missing document is not an error."""

    @abstractmethod
    async def add(self, collection: str, game_id: str, data: dict[str, Any]) -> str:
        """Append a document under a generated id and return the id."""

    @abstractmethod
    async def read_collection(
        self,
        collection: str,
        game_id: str,
        query: Optional[CollectionQuery] = None,
    ) -> list[dict[str, Any]]:
        """Read every document of a game's collection."""

    @abstractmethod
    async def subscribe_document(
        self,
        collection: str,
        game_id: str,
        doc_id: str,
        callback: DocumentCallback,
    ) -> Subscription:
        """Listen to one document. None is delivered while it is missing."""

    @abstractmethod
    async def subscribe_collection(
        self,
        collection: str,
        game_id: str,
        callback: CollectionCallback,
        query: Optional[CollectionQuery] = None,
    ) -> Subscription:
        """Listen to a game's collection."""

    async def delete_all(self, collection: str, game_id: str) -> int:
        """
        Delete every document of a game's collection.

        Implemented as read-then-delete-each. Deletes run concurrently; if
        any fail, the survivors stay in place and StoreFailureError reports
        how many were left behind. Retrying is safe.

        Returns:
            Number of documents deleted
        """
        docs = await self.read_collection(collection, game_id)
        results = await asyncio.gather(
            *(self.delete(collection, game_id, doc["id"]) for doc in docs),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(
                f"delete_all on {collection} for game {game_id}: "
                f"{len(failures)} of {len(docs)} deletes failed"
            )
            raise StoreFailureError(
                "delete_all",
                collection,
                f"{len(failures)} of {len(docs)} documents were not deleted",
            ) from failures[0]
        return len(docs)

    async def close(self) -> None:
        """Release connections and stop background listeners."""
        return None
