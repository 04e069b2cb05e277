"""
Reaction (emoji throw) repository.

Append-only. Reads only ever return the newest `limit` reactions, so older
ones drop out of view without being deleted.
"""

import logging
from typing import Any, Callable

from db.store import REACTIONS_COLLECTION, CollectionQuery, DocumentStore, Subscription
from models.documents import ReactionDocument

logger = logging.getLogger(__name__)


def newest_first(limit: int) -> CollectionQuery:
    return CollectionQuery(order_by="timestamp", descending=True, limit=limit)


class ReactionRepository:
    """Repository for reaction documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add(self, game_id: str, from_id: str, to_id: str, emoji: str, timestamp: int) -> ReactionDocument:
        data = {
            "game_id": game_id,
            "from_id": from_id,
            "to_id": to_id,
            "emoji": emoji,
            "timestamp": timestamp,
        }
        reaction_id = await self.store.add(REACTIONS_COLLECTION, game_id, data)
        return ReactionDocument(id=reaction_id, **data)

    async def recent(self, game_id: str, limit: int) -> list[ReactionDocument]:
        data = await self.store.read_collection(REACTIONS_COLLECTION, game_id, newest_first(limit))
        return [ReactionDocument(**d) for d in data]

    async def listen(
        self,
        game_id: str,
        callback: Callable[[list[ReactionDocument]], None],
        limit: int,
    ) -> Subscription:
        def on_snapshot(data: list[dict[str, Any]]) -> None:
            callback([ReactionDocument(**d) for d in data])

        return await self.store.subscribe_collection(
            REACTIONS_COLLECTION, game_id, on_snapshot, newest_first(limit)
        )
