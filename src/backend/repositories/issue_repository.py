"""
Issue repository.

Issues are read in insertion order (`order` ascending).
"""

import logging
from typing import Any, Callable

from db.store import ISSUES_COLLECTION, CollectionQuery, DocumentStore, Subscription
from models.documents import IssueDocument

logger = logging.getLogger(__name__)

INSERTION_ORDER = CollectionQuery(order_by="order")


class IssueRepository:
    """Repository for issue documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create(self, issue: IssueDocument) -> IssueDocument:
        await self.store.set(ISSUES_COLLECTION, issue.game_id, issue.id, issue.model_dump(mode="json"))
        logger.info(f"Created issue {issue.id} in game {issue.game_id}: {issue.title[:50]}")
        return issue

    async def update(self, game_id: str, issue_id: str, changes: dict[str, Any]) -> None:
        await self.store.update(ISSUES_COLLECTION, game_id, issue_id, changes)

    async def delete(self, game_id: str, issue_id: str) -> None:
        await self.store.delete(ISSUES_COLLECTION, game_id, issue_id)
        logger.info(f"Deleted issue {issue_id} in game {game_id}")

    async def get(self, game_id: str, issue_id: str) -> IssueDocument | None:
        data = await self.store.get(ISSUES_COLLECTION, game_id, issue_id)
        return IssueDocument(**data) if data is not None else None

    async def get_all(self, game_id: str) -> list[IssueDocument]:
        data = await self.store.read_collection(ISSUES_COLLECTION, game_id, INSERTION_ORDER)
        return [IssueDocument(**d) for d in data]

    async def count(self, game_id: str) -> int:
        return len(await self.store.read_collection(ISSUES_COLLECTION, game_id))

    async def listen(
        self,
        game_id: str,
        callback: Callable[[list[IssueDocument]], None],
    ) -> Subscription:
        def on_snapshot(data: list[dict[str, Any]]) -> None:
            callback([IssueDocument(**d) for d in data])

        return await self.store.subscribe_collection(ISSUES_COLLECTION, game_id, on_snapshot, INSERTION_ORDER)
