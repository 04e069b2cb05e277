"""
Issue queue.

Backlog of items to estimate, the host-only auto-advance policy, and CSV
import/export.

CSV limitations (kept for compatibility with files produced by earlier
exports):
- Import splits each line on the first comma only. A title containing a
  comma is cut at that comma.
- Export wraps every field in double quotes without escaping embedded
  quotes.
"""

from typing import Any, Callable, Iterable, Optional

import structlog

from core.ids import generate_id
from db.store import DocumentStore, Subscription
from models.documents import GameSessionDocument, IssueDocument
from repositories import IssueRepository
from services.session_service import SessionService

logger = structlog.get_logger(__name__)

CSV_HEADER = "Title,Description,Estimate"


def parse_csv(csv_text: str) -> list[tuple[str, Optional[str]]]:
    """
    Split CSV text into (title, description) pairs.

    Blank lines and lines with an empty title are skipped. Blank
    descriptions become None.
    """
    rows: list[tuple[str, Optional[str]]] = []
    for line in csv_text.splitlines():
        if not line.strip():
            continue
        title, _, description = line.partition(",")
        title = title.strip()
        if not title:
            continue
        rows.append((title, description.strip() or None))
    return rows


def export_issues_to_csv(issues: Iterable[IssueDocument]) -> str:
    """Render issues as CSV with a `Title,Description,Estimate` header."""
    rows = [
        f'"{issue.title}","{issue.description or ""}","{issue.estimate or ""}"'
        for issue in issues
    ]
    return "\n".join([CSV_HEADER, *rows])


def select_next_issue(issues: Iterable[IssueDocument], current_issue: Optional[str]) -> Optional[str]:
    """
    Auto-advance policy.

    Nothing is selected while an issue is current. Otherwise the single
    remaining unestimated issue wins, or failing that the most recently
    added unestimated one.
    """
    if current_issue:
        return None

    unestimated = sorted((i for i in issues if not i.is_estimated), key=lambda i: i.order)
    if not unestimated:
        return None
    if len(unestimated) == 1:
        return unestimated[0].id
    return unestimated[-1].id


class IssueQueue:
    """Service for a game's issue backlog."""

    def __init__(self, store: DocumentStore, sessions: Optional[SessionService] = None):
        self.store = store
        self.issues = IssueRepository(store)
        self.sessions = sessions or SessionService(store)

    async def add_issue(self, game_id: str, title: str, description: Optional[str] = None) -> str:
        """
        Append an issue and return its id.

        The order index is the current issue count; concurrent adds may
        share an index.
        """
        order = await self.issues.count(game_id)
        issue = IssueDocument(
            id=generate_id(),
            game_id=game_id,
            title=title,
            description=description,
            order=order,
        )
        await self.issues.create(issue)
        return issue.id

    async def update_issue(self, game_id: str, issue_id: str, **changes: Any) -> None:
        await self.issues.update(game_id, issue_id, changes)

    async def mark_issue_estimated(self, game_id: str, issue_id: str, estimate: str) -> None:
        await self.issues.update(game_id, issue_id, {"estimate": estimate, "is_estimated": True})
        logger.info("issue_estimated", game_id=game_id, issue_id=issue_id, estimate=estimate)

    async def delete_issue(self, game_id: str, issue_id: str) -> None:
        """Delete an issue. A dangling current_issue is left for auto-advance or repair."""
        await self.issues.delete(game_id, issue_id)

    async def get_issues(self, game_id: str) -> list[IssueDocument]:
        return await self.issues.get_all(game_id)

    async def listen_to_issues(
        self,
        game_id: str,
        callback: Callable[[list[IssueDocument]], None],
    ) -> Subscription:
        return await self.issues.listen(game_id, callback)

    async def auto_advance(
        self,
        game_id: str,
        session: Optional[GameSessionDocument],
        issues: list[IssueDocument],
        is_host: bool,
    ) -> Optional[str]:
        """
        Apply the auto-advance policy to the latest snapshots.

        Only the host writes; every other client returns None untouched.

        Returns:
            The issue id that was selected, or None
        """
        if not is_host or session is None:
            return None

        next_issue = select_next_issue(issues, session.current_issue)
        if next_issue is None:
            return None

        await self.sessions.set_current_issue(game_id, next_issue)
        logger.info("issue_auto_selected", game_id=game_id, issue_id=next_issue)
        return next_issue

    # ========================================================================
    # CSV
    # ========================================================================

    async def import_issues_from_csv(self, game_id: str, csv_text: str) -> int:
        """
        Add one issue per CSV line, in file order.

        Not transactional: a failure part way leaves the earlier lines
        imported and propagates the store error.

        Returns:
            Number of issues imported
        """
        imported = 0
        for title, description in parse_csv(csv_text):
            await self.add_issue(game_id, title, description)
            imported += 1

        logger.info("issues_imported", game_id=game_id, count=imported)
        return imported

    async def export_issues_to_csv(self, game_id: str) -> str:
        return export_issues_to_csv(await self.get_issues(game_id))
