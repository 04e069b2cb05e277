"""
Game session state machine.

Owns the session lifecycle (create, issue selection, reveal/reset) and
participant membership (join/leave/remove). Host-only operations are not
enforced here; callers gate them with `is_host`.

    Active(current_issue=None, votes_revealed=False)
      -> IssueSelected(current_issue=id)       set_current_issue
      -> Revealed(votes_revealed=True)         reveal_votes
      -> IssueSelected(None or next)           finalize + reset_voting_round
"""

from typing import Any, Callable, Optional

import structlog

from core.config import settings
from core.exceptions import GameNotFoundError, StoreFailureError
from core.ids import generate_game_id, generate_participant_id
from db.store import DocumentStore, Subscription
from models.documents import (
    GameSessionDocument,
    ParticipantDocument,
    get_avatar,
    get_avatar_color,
)
from repositories import (
    IssueRepository,
    ParticipantRepository,
    SessionRepository,
    VoteRepository,
)
from schemas.results import CreateResult, JoinResult

logger = structlog.get_logger(__name__)


def session_name_for(host_name: str) -> str:
    return f"{host_name}'s Planning Poker"


def is_host(session: Optional[GameSessionDocument], participant_id: Optional[str]) -> bool:
    """Host privileges are matched by identity, not by live membership."""
    return session is not None and participant_id is not None and session.host_id == participant_id


class SessionService:
    """Service for game sessions and their membership."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.sessions = SessionRepository(store)
        self.participants = ParticipantRepository(store)
        self.votes = VoteRepository(store)
        self.issues = IssueRepository(store)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def create_session(self, host_name: str, is_spectator: bool = False) -> CreateResult:
        """
        Create a game together with its host participant.

        The two writes are not transactional. The host write is attempted
        even when the session write failed, and the first failure is
        re-raised so the caller never gets ids for a half-created game.

        Raises:
            StoreFailureError: If either write was rejected
        """
        game_id = generate_game_id()
        participant_id = generate_participant_id()

        session = GameSessionDocument(
            id=game_id,
            game_id=game_id,
            name=session_name_for(host_name),
            created_by=participant_id,
            host_id=participant_id,
        )
        host = ParticipantDocument(
            id=participant_id,
            game_id=game_id,
            name=host_name,
            avatar=get_avatar(host_name),
            color=get_avatar_color(0),
            is_host=True,
            is_spectator=is_spectator,
        )

        errors: list[StoreFailureError] = []
        writes = (lambda: self.sessions.create(session), lambda: self.participants.create(host))
        for write in writes:
            try:
                await write()
            except StoreFailureError as e:
                logger.error("create_session_write_failed", game_id=game_id, error=str(e))
                errors.append(e)

        if errors:
            raise errors[0]

        logger.info("session_created", game_id=game_id, host_id=participant_id)
        return CreateResult(game_id=game_id, participant_id=participant_id)

    async def join_session(self, game_id: str, name: str, is_spectator: bool = False) -> JoinResult:
        """
        Join an existing game.

        The palette colour comes from the current participant count, so
        racing joins may share a colour.
        """
        try:
            if not await self.sessions.exists(game_id):
                error = GameNotFoundError(game_id)
                logger.info("join_rejected", game_id=game_id, reason="not_found")
                return JoinResult(success=False, error=str(error))

            count = await self.participants.count(game_id)
            participant = ParticipantDocument(
                id=generate_participant_id(),
                game_id=game_id,
                name=name,
                avatar=get_avatar(name),
                color=get_avatar_color(count),
                is_spectator=is_spectator,
            )
            await self.participants.create(participant)
        except StoreFailureError as e:
            logger.error("join_session_failed", game_id=game_id, error=str(e))
            return JoinResult(success=False, error=str(e))

        return JoinResult(success=True, participant_id=participant.id)

    async def get_session(self, game_id: str) -> Optional[GameSessionDocument]:
        return await self.sessions.get(game_id)

    async def get_participants(self, game_id: str) -> list[ParticipantDocument]:
        return await self.participants.get_all(game_id)

    async def update_session(self, game_id: str, **changes: Any) -> None:
        """Generic partial update of the session document."""
        await self.sessions.update(game_id, changes)

    # ========================================================================
    # Round transitions
    # ========================================================================

    async def set_current_issue(self, game_id: str, issue_id: Optional[str]) -> None:
        """Unconditionally point the game at an issue (or at none)."""
        await self.sessions.update(game_id, {"current_issue": issue_id})
        logger.info("current_issue_set", game_id=game_id, issue_id=issue_id)

    async def reveal_votes(self, game_id: str) -> None:
        await self.sessions.update(game_id, {"votes_revealed": True})
        logger.info("votes_revealed", game_id=game_id)

    async def reset_voting_round(self, game_id: str) -> int:
        """
        Hide votes and wipe the round's tally.

        The flag is flipped first. If the delete phase fails part way the
        surviving votes stay behind and StoreFailureError is raised; retry
        this call (or `repair_session`) to finish the wipe.

        Returns:
            Number of votes deleted
        """
        await self.sessions.update(game_id, {"votes_revealed": False})
        deleted = await self.votes.delete_all(game_id)
        logger.info("voting_round_reset", game_id=game_id, votes_deleted=deleted)
        return deleted

    # ========================================================================
    # Membership
    # ========================================================================

    async def leave_session(self, game_id: str, participant_id: str) -> None:
        await self.participants.delete(game_id, participant_id)

    async def remove_participant(self, game_id: str, participant_id: str) -> None:
        """Host-initiated removal; same effect as the participant leaving."""
        await self.participants.delete(game_id, participant_id)
        logger.info("participant_removed", game_id=game_id, participant_id=participant_id)

    # ========================================================================
    # Subscriptions
    # ========================================================================

    async def listen_to_session(
        self,
        game_id: str,
        callback: Callable[[Optional[GameSessionDocument]], None],
    ) -> Subscription:
        return await self.sessions.listen(game_id, callback)

    async def listen_to_participants(
        self,
        game_id: str,
        callback: Callable[[list[ParticipantDocument]], None],
    ) -> Subscription:
        return await self.participants.listen(game_id, callback)

    # ========================================================================
    # Maintenance
    # ========================================================================

    async def repair_session(self, game_id: str) -> list[str]:
        """
        Bring a game back to a consistent round state. Safe to run repeatedly.

        - A current issue that was deleted or is already estimated is cleared.
        - With no current issue, a still-set reveal flag or leftover votes
          mean a reset never finished, so the round is reset.

        Returns:
            Names of the repairs applied (empty when nothing was wrong)
        """
        session = await self.sessions.get(game_id)
        if session is None:
            raise GameNotFoundError(game_id)

        repairs: list[str] = []
        current_issue = session.current_issue

        if current_issue is not None:
            issue = await self.issues.get(game_id, current_issue)
            if issue is None or issue.is_estimated:
                await self.set_current_issue(game_id, None)
                current_issue = None
                repairs.append("cleared_current_issue")

        if current_issue is None:
            stale_votes = await self.votes.get_all(game_id)
            if session.votes_revealed or stale_votes:
                await self.reset_voting_round(game_id)
                repairs.append("reset_voting_round")

        if repairs:
            logger.warning("session_repaired", game_id=game_id, repairs=repairs)
        return repairs

    @staticmethod
    def get_game_url(game_id: str) -> str:
        """Shareable link to a game."""
        return f"{settings.GAME_URL_BASE.rstrip('/')}/game/{game_id}"
