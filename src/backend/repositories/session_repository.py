"""
Game session repository.

The session document is the root of a game; its id is the game id.
"""

import logging
from typing import Any, Callable, Optional

from db.store import SESSIONS_COLLECTION, DocumentStore, Subscription
from models.documents import GameSessionDocument

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for game session documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, game_id: str) -> Optional[GameSessionDocument]:
        """Point read of the session document."""
        data = await self.store.get(SESSIONS_COLLECTION, game_id, game_id)
        if data is None:
            return None
        return GameSessionDocument(**data)

    async def exists(self, game_id: str) -> bool:
        return await self.store.get(SESSIONS_COLLECTION, game_id, game_id) is not None

    async def create(self, session: GameSessionDocument) -> GameSessionDocument:
        await self.store.set(SESSIONS_COLLECTION, session.game_id, session.id, session.model_dump(mode="json"))
        logger.info(f"Created game session {session.id}: {session.name}")
        return session

    async def update(self, game_id: str, changes: dict[str, Any]) -> None:
        """Partial update; raises DocumentNotFoundError for unknown games."""
        await self.store.update(SESSIONS_COLLECTION, game_id, game_id, changes)

    async def listen(
        self,
        game_id: str,
        callback: Callable[[Optional[GameSessionDocument]], None],
    ) -> Subscription:
        def on_snapshot(data: Optional[dict[str, Any]]) -> None:
            callback(GameSessionDocument(**data) if data is not None else None)

        return await self.store.subscribe_document(SESSIONS_COLLECTION, game_id, game_id, on_snapshot)
