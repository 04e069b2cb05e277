"""
Voting coordinator.

Owns vote submission for the current round, the per-participant debounce
that collapses rapid re-votes into one write, reveal readiness, and
finalizing a revealed round into an issue estimate.
"""

import asyncio
from typing import Callable, Iterable, Optional

import structlog

from core.config import settings
from core.exceptions import GameNotFoundError, StoreFailureError
from db.store import DocumentStore, Subscription
from models.documents import (
    VOTE_VALUES,
    GameSessionDocument,
    ParticipantDocument,
    VoteDocument,
)
from repositories import IssueRepository, VoteRepository
from schemas.results import FinalizeResult, RevealReadiness
from services.session_service import SessionService
from services.vote_stats import calculate_vote_stats, derive_estimate

logger = structlog.get_logger(__name__)

VoteKey = tuple[str, str]


def validate_vote_value(value: str) -> str:
    if value not in VOTE_VALUES:
        raise ValueError(f"Invalid vote value {value!r}; expected one of {', '.join(VOTE_VALUES)}")
    return value


def has_voted(votes: Iterable[VoteDocument], participant_id: str) -> bool:
    """Existence check only; never looks at the value."""
    return any(v.participant_id == participant_id for v in votes)


def get_participant_vote(
    votes: Iterable[VoteDocument],
    participant_id: str,
    session: Optional[GameSessionDocument] = None,
) -> Optional[str]:
    """
    A participant's vote value.

    When the session is passed in, values stay hidden (None) until the
    round has been revealed.
    """
    if session is not None and not session.votes_revealed:
        return None
    for vote in votes:
        if vote.participant_id == participant_id:
            return vote.value
    return None


def reveal_readiness(
    votes: Iterable[VoteDocument],
    participants: Iterable[ParticipantDocument],
) -> RevealReadiness:
    """Count votes from non-spectators against the number of non-spectators."""
    eligible = {p.id for p in participants if not p.is_spectator}
    voted = {v.participant_id for v in votes if v.participant_id in eligible}
    return RevealReadiness(voted=len(voted), eligible=len(eligible))


class VotingCoordinator:
    """
    Per-client vote submission and round finalization.

    Debounce timers are keyed by (game_id, participant_id): a burst of
    submissions for one participant collapses into a single write of the
    latest value after `debounce_ms` of quiet.
    """

    def __init__(
        self,
        store: DocumentStore,
        sessions: Optional[SessionService] = None,
        debounce_ms: Optional[int] = None,
    ):
        self.store = store
        self.sessions = sessions or SessionService(store)
        self.votes = VoteRepository(store)
        self.issues = IssueRepository(store)
        self.debounce_ms = settings.VOTE_UPDATE_DEBOUNCE_MS if debounce_ms is None else debounce_ms

        self._timers: dict[VoteKey, asyncio.TimerHandle] = {}
        self._pending: dict[VoteKey, str] = {}
        self._inflight: set[asyncio.Task] = set()

    # ========================================================================
    # Submission
    # ========================================================================

    async def submit_vote(self, game_id: str, participant_id: str, value: str) -> None:
        """
        Debounced vote submission.

        Raises:
            ValueError: If the value is not on the deck
        """
        validate_vote_value(value)
        key = (game_id, participant_id)

        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

        self._pending[key] = value
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce_ms / 1000, self._fire, key)

    async def submit_vote_now(self, game_id: str, participant_id: str, value: str) -> VoteDocument:
        """Write a vote immediately, bypassing the debounce."""
        validate_vote_value(value)
        vote = VoteDocument(
            id=participant_id,
            game_id=game_id,
            participant_id=participant_id,
            value=value,
        )
        return await self.votes.upsert(vote)

    def _fire(self, key: VoteKey) -> None:
        self._timers.pop(key, None)
        value = self._pending.pop(key, None)
        if value is None:
            return
        task = asyncio.create_task(self.submit_vote_now(key[0], key[1], value))
        self._inflight.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("vote_write_failed", error=str(error))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def flush_pending(self) -> None:
        """
        Write every pending debounced vote now and wait for in-flight writes.

        Raises:
            StoreFailureError: The first failed write of the pending batch
        """
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        pending, self._pending = self._pending, {}

        results = await asyncio.gather(
            *(self.submit_vote_now(gid, pid, value) for (gid, pid), value in pending.items()),
            return_exceptions=True,
        )
        await self.wait_inflight()

        for result in results:
            if isinstance(result, BaseException):
                raise result

    def cancel_pending(self) -> None:
        """Drop pending debounced votes without writing them."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._pending.clear()

    async def wait_inflight(self) -> None:
        """Wait for debounced writes that already fired. Failures are logged, not raised."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_votes(self, game_id: str) -> list[VoteDocument]:
        return await self.votes.get_all(game_id)

    async def listen_to_votes(
        self,
        game_id: str,
        callback: Callable[[list[VoteDocument]], None],
    ) -> Subscription:
        return await self.votes.listen(game_id, callback)

    async def delete_vote(self, game_id: str, participant_id: str) -> None:
        key = (game_id, participant_id)
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(key, None)
        await self.votes.delete(game_id, participant_id)

    # ========================================================================
    # Finalization
    # ========================================================================

    async def finalize_estimate(
        self,
        game_id: str,
        participants: Optional[list[ParticipantDocument]] = None,
    ) -> FinalizeResult:
        """
        Turn the current round's votes into the current issue's estimate.

        Three non-atomic steps, in order: mark the issue estimated, clear
        the current issue, reset the round. If a later step fails the issue
        stays estimated and `SessionService.repair_session` finishes the job.
        Spectator votes are left out of the statistics.
        """
        try:
            session = await self.sessions.get_session(game_id)
            if session is None:
                return FinalizeResult(success=False, error=str(GameNotFoundError(game_id)))
            issue_id = session.current_issue
            if issue_id is None:
                return FinalizeResult(success=False, error="No issue is currently being estimated")

            if participants is None:
                participants = await self.sessions.get_participants(game_id)
            spectators = {p.id for p in participants if p.is_spectator}
            votes = [v for v in await self.votes.get_all(game_id) if v.participant_id not in spectators]
        except StoreFailureError as e:
            logger.error("finalize_read_failed", game_id=game_id, error=str(e))
            return FinalizeResult(success=False, error=str(e))

        stats = calculate_vote_stats(votes)
        if stats is None:
            return FinalizeResult(success=False, issue_id=issue_id, error="No votes to finalize")

        estimate = derive_estimate(stats)
        try:
            await self.issues.update(game_id, issue_id, {"estimate": estimate, "is_estimated": True})
            await self.sessions.set_current_issue(game_id, None)
            await self.sessions.reset_voting_round(game_id)
        except StoreFailureError as e:
            logger.error("finalize_failed", game_id=game_id, issue_id=issue_id, error=str(e))
            return FinalizeResult(
                success=False,
                issue_id=issue_id,
                estimate=estimate,
                stats=stats.to_dict(),
                error=str(e),
            )

        logger.info("estimate_finalized", game_id=game_id, issue_id=issue_id, estimate=estimate)
        return FinalizeResult(success=True, issue_id=issue_id, estimate=estimate, stats=stats.to_dict())
