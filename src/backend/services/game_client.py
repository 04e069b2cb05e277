"""
Game client.

Composition root for one participant's view of a game. It subscribes to
the session, participants, votes, issues and reactions of a game, keeps
the latest snapshot of each in a GameState, and runs the reactive side
effects:

- host-only auto-advance to the next unestimated issue
- clearing the locally selected card once a round reset is observed
- membership reconciliation (a cached participant id that vanished from a
  non-empty participant list means the client must re-join)
- deduplicated reaction delivery

Every snapshot may be stale or partial relative to the others, so each
handler works from whatever the state currently holds and is safe to run
again on the same data.

Usage:
    client = GameClient(store, callbacks=ClientCallbacks(on_state=render))
    created = await client.create_game("Alice")
    await client.open(created.game_id)
    ...
    await client.close()
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Optional

import structlog

from core.exceptions import HostOnlyError, StaleIdentityError, StoreFailureError
from db.provider import get_document_store
from db.store import DocumentStore, Subscription
from models.documents import (
    GameSessionDocument,
    IssueDocument,
    ParticipantDocument,
    ReactionDocument,
    VoteDocument,
)
from schemas.results import CreateResult, FinalizeResult, JoinResult, RevealReadiness, ThrowResult
from services.identity_store import FileIdentityStore, IdentityStore
from services.issue_service import IssueQueue, export_issues_to_csv, select_next_issue
from services.rate_limiter import RateLimiter
from services.reaction_service import ReactionChannel, ReactionDeduplicator
from services.session_service import SessionService, is_host
from services.vote_stats import VoteStats, calculate_vote_stats
from services.voting_service import VotingCoordinator, reveal_readiness

logger = structlog.get_logger(__name__)


@dataclass
class GameState:
    """Latest snapshots of one game as seen by this client."""

    game_id: str
    participant_id: Optional[str]
    session: Optional[GameSessionDocument] = None
    participants: list[ParticipantDocument] = field(default_factory=list)
    votes: list[VoteDocument] = field(default_factory=list)
    issues: list[IssueDocument] = field(default_factory=list)
    reactions: list[ReactionDocument] = field(default_factory=list)
    selected_vote: Optional[str] = None

    @property
    def is_host(self) -> bool:
        return is_host(self.session, self.participant_id)

    @property
    def me(self) -> Optional[ParticipantDocument]:
        return next((p for p in self.participants if p.id == self.participant_id), None)

    @property
    def current_issue(self) -> Optional[IssueDocument]:
        if self.session is None or self.session.current_issue is None:
            return None
        return next((i for i in self.issues if i.id == self.session.current_issue), None)

    @property
    def votes_revealed(self) -> bool:
        return self.session is not None and self.session.votes_revealed

    @property
    def readiness(self) -> RevealReadiness:
        return reveal_readiness(self.votes, self.participants)

    @property
    def stats(self) -> Optional[VoteStats]:
        """Round statistics, only once the votes are revealed."""
        if not self.votes_revealed:
            return None
        return calculate_vote_stats(self.votes)


@dataclass
class ClientCallbacks:
    """UI-facing hooks. All are optional and called synchronously."""

    on_state: Optional[Callable[[GameState], None]] = None
    on_reaction: Optional[Callable[[ReactionDocument], None]] = None
    on_rejoin_required: Optional[Callable[[str], None]] = None


class GameClient:
    """One participant's connection to a game."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        identity_store: Optional[IdentityStore] = None,
        callbacks: Optional[ClientCallbacks] = None,
        rate_limiter: Optional[RateLimiter] = None,
        debounce_ms: Optional[int] = None,
    ):
        self.store = store or get_document_store()
        self.identity = identity_store or FileIdentityStore()
        self.callbacks = callbacks or ClientCallbacks()

        self.sessions = SessionService(self.store)
        self.voting = VotingCoordinator(self.store, self.sessions, debounce_ms=debounce_ms)
        self.issue_queue = IssueQueue(self.store, self.sessions)
        self.reactions = ReactionChannel(self.store, rate_limiter=rate_limiter or RateLimiter())
        self.deduplicator = ReactionDeduplicator()

        self.state: Optional[GameState] = None
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._advancing = False
        self._advanced_for: Optional[GameSessionDocument] = None
        self._round_key: Optional[tuple[bool, int]] = None

    @property
    def is_open(self) -> bool:
        return self.state is not None

    # ========================================================================
    # Entering and leaving
    # ========================================================================

    async def create_game(self, host_name: str, is_spectator: bool = False) -> CreateResult:
        """Create a game as its host and remember the new identity."""
        result = await self.sessions.create_session(host_name, is_spectator)
        self.identity.remember(result.game_id, result.participant_id)
        return result

    async def join_game(self, game_id: str, name: str, is_spectator: bool = False) -> JoinResult:
        result = await self.sessions.join_session(game_id, name, is_spectator)
        if result.success and result.participant_id:
            self.identity.remember(game_id, result.participant_id)
        return result

    async def open(self, game_id: str) -> GameState:
        """
        Start listening to a game with the locally cached identity.

        Raises:
            StaleIdentityError: No cached participant for this game, or the
                cached one is no longer a member. The re-join callback has
                already fired when this is raised.
        """
        if self.state is not None:
            await self.close()

        identity = self.identity.load()
        if not identity.is_member_of(game_id):
            self._require_rejoin(game_id)
            raise StaleIdentityError(game_id, identity.current_participant_id)

        state = GameState(game_id=game_id, participant_id=identity.current_participant_id)
        self.state = state
        self._round_key = None
        self._advanced_for = None

        listeners = (
            (self.sessions.listen_to_session, self._on_session),
            (self.sessions.listen_to_participants, self._on_participants),
            (self.voting.listen_to_votes, self._on_votes),
            (self.issue_queue.listen_to_issues, self._on_issues),
            (self.reactions.listen_to_reactions, self._on_reactions),
        )
        for listen, handler in listeners:
            subscription = await listen(game_id, handler)
            if self.state is not state:
                # Reconciliation tore the view down during an initial snapshot
                subscription.unsubscribe()
                self._dispose_subscriptions()
                raise StaleIdentityError(game_id, state.participant_id)
            self._subscriptions.append(subscription)

        logger.info("game_opened", game_id=game_id, participant_id=state.participant_id)
        return state

    async def close(self) -> None:
        """Flush the pending vote, dispose every listener and stop background work."""
        if self.state is None:
            return
        try:
            await self.voting.flush_pending()
        except StoreFailureError as e:
            logger.error("vote_flush_failed_on_close", game_id=self.state.game_id, error=str(e))
        self._teardown()
        await self.wait_idle()

    async def leave(self) -> None:
        """Leave the game and forget the local participant id."""
        state = self._require_state()
        # Stop listening first so our own removal is not taken for a kick
        self._teardown()
        await self.wait_idle()
        await self.sessions.leave_session(state.game_id, state.participant_id)
        self.identity.forget_participant(state.game_id)

    def _dispose_subscriptions(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def _teardown(self) -> None:
        self._dispose_subscriptions()
        self.voting.cancel_pending()
        for task in self._tasks:
            task.cancel()
        if self.state is not None:
            logger.info("game_closed", game_id=self.state.game_id)
        self.state = None

    async def wait_idle(self) -> None:
        """Wait for background side effects (auto-advance writes) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ========================================================================
    # Host actions
    # ========================================================================

    async def reveal(self) -> None:
        state = self._require_host("reveal votes")
        await self.sessions.reveal_votes(state.game_id)

    async def reset_round(self) -> None:
        state = self._require_host("reset the round")
        # A card picked before the wipe must not land in the new round
        self.voting.cancel_pending()
        await self.voting.wait_inflight()
        await self.sessions.reset_voting_round(state.game_id)
        state.selected_vote = None

    async def finalize(self) -> FinalizeResult:
        state = self._require_host("finalize the estimate")
        try:
            await self.voting.flush_pending()
        except StoreFailureError as e:
            logger.error("vote_flush_failed_before_finalize", game_id=state.game_id, error=str(e))
            return FinalizeResult(success=False, error=str(e))
        result = await self.voting.finalize_estimate(state.game_id, participants=state.participants)
        if result.success:
            self.voting.cancel_pending()
            state.selected_vote = None
        return result

    async def remove_participant(self, participant_id: str) -> None:
        state = self._require_host("remove participants")
        await self.sessions.remove_participant(state.game_id, participant_id)

    async def add_issue(self, title: str, description: Optional[str] = None) -> str:
        state = self._require_host("add issues")
        return await self.issue_queue.add_issue(state.game_id, title, description)

    async def delete_issue(self, issue_id: str) -> None:
        state = self._require_host("delete issues")
        await self.issue_queue.delete_issue(state.game_id, issue_id)

    async def select_issue(self, issue_id: Optional[str]) -> None:
        state = self._require_host("select the current issue")
        await self.sessions.set_current_issue(state.game_id, issue_id)

    async def import_csv(self, csv_text: str) -> int:
        state = self._require_host("import issues")
        return await self.issue_queue.import_issues_from_csv(state.game_id, csv_text)

    def export_csv(self) -> str:
        return export_issues_to_csv(self._require_state().issues)

    # ========================================================================
    # Voter actions
    # ========================================================================

    async def select_vote(self, value: str) -> None:
        """Pick a card. The write is debounced."""
        state = self._require_state()
        await self.voting.submit_vote(state.game_id, state.participant_id, value)
        state.selected_vote = value

    async def throw_emoji(self, to_id: str, emoji: str) -> ThrowResult:
        state = self._require_state()
        return await self.reactions.throw_emoji(state.game_id, state.participant_id, to_id, emoji)

    def get_game_url(self) -> str:
        return self.sessions.get_game_url(self._require_state().game_id)

    # ========================================================================
    # Snapshot handlers
    # ========================================================================

    def _on_session(self, session: Optional[GameSessionDocument]) -> None:
        if self.state is None:
            return
        self.state.session = session
        self._clear_selection_after_reset()
        self._maybe_auto_advance()
        self._emit_state()

    def _on_participants(self, participants: list[ParticipantDocument]) -> None:
        if self.state is None:
            return
        self.state.participants = participants
        if participants and self.state.me is None:
            self._handle_lost_membership()
            return
        self._emit_state()

    def _on_votes(self, votes: list[VoteDocument]) -> None:
        if self.state is None:
            return
        self.state.votes = votes
        self._clear_selection_after_reset()
        self._emit_state()

    def _on_issues(self, issues: list[IssueDocument]) -> None:
        if self.state is None:
            return
        self.state.issues = issues
        self._maybe_auto_advance()
        self._emit_state()

    def _on_reactions(self, reactions: list[ReactionDocument]) -> None:
        if self.state is None:
            return
        self.state.reactions = reactions
        for reaction in self.deduplicator.filter_new(reactions):
            if self.callbacks.on_reaction is not None:
                self.callbacks.on_reaction(reaction)
        self._emit_state()

    # ========================================================================
    # Side effects
    # ========================================================================

    def _clear_selection_after_reset(self) -> None:
        state = self.state
        if state.session is None:
            return
        # Only react when the round shape changes, not on every snapshot
        round_key = (state.session.votes_revealed, len(state.votes))
        if round_key != self._round_key and round_key == (False, 0):
            self.voting.cancel_pending()
            state.selected_vote = None
        self._round_key = round_key

    def _maybe_auto_advance(self) -> None:
        state = self.state
        if state is None or not state.is_host or self._advancing:
            return
        # One attempt per session snapshot; the write comes back as a new one
        if self._advanced_for is state.session:
            return
        if select_next_issue(state.issues, state.session.current_issue) is None:
            return

        self._advancing = True
        self._advanced_for = state.session
        self._spawn(
            self.issue_queue.auto_advance(state.game_id, state.session, list(state.issues), is_host=True),
            on_done=self._advance_done,
        )

    def _advance_done(self, task: asyncio.Task) -> None:
        self._advancing = False
        if task.cancelled() or task.exception() is not None:
            # Let the next issue or session change try again
            self._advanced_for = None
            return
        # Snapshots that arrived during the write were skipped
        self._maybe_auto_advance()

    def _handle_lost_membership(self) -> None:
        state = self.state
        logger.warning("participant_missing_from_game", game_id=state.game_id, participant_id=state.participant_id)
        self.identity.forget_participant(state.game_id)
        self._teardown()
        self._require_rejoin(state.game_id)

    def _require_rejoin(self, game_id: str) -> None:
        if self.callbacks.on_rejoin_required is not None:
            self.callbacks.on_rejoin_required(game_id)

    def _emit_state(self) -> None:
        if self.callbacks.on_state is not None and self.state is not None:
            self.callbacks.on_state(self.state)

    def _spawn(self, coro: Coroutine[Any, Any, Any], on_done: Optional[Callable[[asyncio.Task], None]] = None) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if on_done is not None:
                on_done(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("background_write_failed", error=str(t.exception()))

        task.add_done_callback(done)

    # ========================================================================
    # Guards
    # ========================================================================

    def _require_state(self) -> GameState:
        if self.state is None:
            raise RuntimeError("No game is open")
        return self.state

    def _require_host(self, action: str) -> GameState:
        state = self._require_state()
        if not state.is_host:
            raise HostOnlyError(action)
        return state
