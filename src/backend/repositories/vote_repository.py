"""
Vote repository.

Votes are keyed by participant id, so the collection always holds at most
one live vote per participant for the current round.
"""

import logging
from typing import Any, Callable

from db.store import VOTES_COLLECTION, DocumentStore, Subscription
from models.documents import VoteDocument

logger = logging.getLogger(__name__)


class VoteRepository:
    """Repository for vote documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def upsert(self, vote: VoteDocument) -> VoteDocument:
        """Create or overwrite the participant's vote."""
        await self.store.set(VOTES_COLLECTION, vote.game_id, vote.participant_id, vote.model_dump(mode="json"))
        logger.debug(f"Stored vote for participant {vote.participant_id} in game {vote.game_id}")
        return vote

    async def get_all(self, game_id: str) -> list[VoteDocument]:
        data = await self.store.read_collection(VOTES_COLLECTION, game_id)
        return [VoteDocument(**d) for d in data]

    async def delete(self, game_id: str, participant_id: str) -> None:
        await self.store.delete(VOTES_COLLECTION, game_id, participant_id)

    async def delete_all(self, game_id: str) -> int:
        """Wipe the round's votes. Returns how many were deleted."""
        deleted = await self.store.delete_all(VOTES_COLLECTION, game_id)
        logger.debug(f"Deleted {deleted} votes in game {game_id}")
        return deleted

    async def listen(
        self,
        game_id: str,
        callback: Callable[[list[VoteDocument]], None],
    ) -> Subscription:
        def on_snapshot(data: list[dict[str, Any]]) -> None:
            callback([VoteDocument(**d) for d in data])

        return await self.store.subscribe_collection(VOTES_COLLECTION, game_id, on_snapshot)
