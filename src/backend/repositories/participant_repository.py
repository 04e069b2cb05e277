"""
Participant repository.

Participants are keyed by participant id inside their game.
"""

import logging
from typing import Any, Callable

from db.store import PARTICIPANTS_COLLECTION, CollectionQuery, DocumentStore, Subscription
from models.documents import ParticipantDocument

logger = logging.getLogger(__name__)

# Join order; the host (joined first) leads the list
JOIN_ORDER = CollectionQuery(order_by="joined_at")


class ParticipantRepository:
    """Repository for participant documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, participant: ParticipantDocument) -> ParticipantDocument:
        await self.store.set(
            PARTICIPANTS_COLLECTION,
            participant.game_id,
            participant.id,
            participant.model_dump(mode="json"),
        )
        logger.info(f"Participant {participant.id} joined game {participant.game_id}")
        return participant

    async def get_all(self, game_id: str) -> list[ParticipantDocument]:
        data = await self.store.read_collection(PARTICIPANTS_COLLECTION, game_id, JOIN_ORDER)
        return [ParticipantDocument(**d) for d in data]

    async def count(self, game_id: str) -> int:
        return len(await self.store.read_collection(PARTICIPANTS_COLLECTION, game_id))

    async def delete(self, game_id: str, participant_id: str) -> None:
        await self.store.delete(PARTICIPANTS_COLLECTION, game_id, participant_id)
        logger.info(f"Participant {participant_id} removed from game {game_id}")

    async def listen(
        self,
        game_id: str,
        callback: Callable[[list[ParticipantDocument]], None],
    ) -> Subscription:
        def on_snapshot(data: list[dict[str, Any]]) -> None:
            callback([ParticipantDocument(**d) for d in data])

        return await self.store.subscribe_collection(PARTICIPANTS_COLLECTION, game_id, on_snapshot, JOIN_ORDER)
