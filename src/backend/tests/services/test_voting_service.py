"""
Tests for the voting coordinator.
"""

import asyncio

import pytest

from db.memory_store import InMemoryDocumentStore
from models.documents import GameSessionDocument, ParticipantDocument, VoteDocument
from services.issue_service import IssueQueue
from services.session_service import SessionService
from services.voting_service import (
    VotingCoordinator,
    get_participant_vote,
    has_voted,
    reveal_readiness,
)


def vote(pid: str, value: str) -> VoteDocument:
    return VoteDocument(id=pid, game_id="g1", participant_id=pid, value=value)


def participant(pid: str, is_spectator: bool = False) -> ParticipantDocument:
    return ParticipantDocument(
        id=pid, game_id="g1", name=pid, avatar="X", color="#ef4444", is_spectator=is_spectator
    )


@pytest.mark.unit
class TestSubmitVote:
    """Test debounced and immediate submission."""

    @pytest.mark.asyncio
    async def test_rejects_values_off_the_deck(self, voting: VotingCoordinator) -> None:
        with pytest.raises(ValueError):
            await voting.submit_vote("g1", "p1", "4")
        with pytest.raises(ValueError):
            await voting.submit_vote_now("g1", "p1", "100")

    @pytest.mark.asyncio
    async def test_submit_now_upserts(self, voting: VotingCoordinator) -> None:
        await voting.submit_vote_now("g1", "p1", "3")
        await voting.submit_vote_now("g1", "p1", "?")

        votes = await voting.get_votes("g1")
        assert [(v.participant_id, v.value) for v in votes] == [("p1", "?")]

    @pytest.mark.asyncio
    async def test_burst_collapses_to_one_write(self, store: InMemoryDocumentStore, voting: VotingCoordinator) -> None:
        for value in ("1", "2", "3", "5"):
            await voting.submit_vote("g1", "p1", value)

        assert store.write_count == 0
        await asyncio.sleep(0.1)

        assert store.write_count == 1
        assert [v.value for v in await voting.get_votes("g1")] == ["5"]

    @pytest.mark.asyncio
    async def test_debounce_is_per_participant(self, store: InMemoryDocumentStore, voting: VotingCoordinator) -> None:
        """Two participants voting at once both get written."""
        await voting.submit_vote("g1", "p1", "3")
        await voting.submit_vote("g1", "p2", "8")
        await voting.submit_vote("g2", "p1", "13")

        await asyncio.sleep(0.1)

        assert store.write_count == 3

    @pytest.mark.asyncio
    async def test_flush_pending_writes_immediately(self, voting: VotingCoordinator) -> None:
        await voting.submit_vote("g1", "p1", "8")
        assert voting.pending_count == 1

        await voting.flush_pending()

        assert voting.pending_count == 0
        assert [v.value for v in await voting.get_votes("g1")] == ["8"]

    @pytest.mark.asyncio
    async def test_cancel_pending_drops_votes(self, store: InMemoryDocumentStore, voting: VotingCoordinator) -> None:
        await voting.submit_vote("g1", "p1", "8")

        voting.cancel_pending()
        await asyncio.sleep(0.05)

        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_failed_debounced_write_is_logged_not_raised(
        self, store: InMemoryDocumentStore, voting: VotingCoordinator
    ) -> None:
        store.fail_next("set", "votes")
        await voting.submit_vote("g1", "p1", "8")

        await asyncio.sleep(0.1)

        assert await voting.get_votes("g1") == []

    @pytest.mark.asyncio
    async def test_delete_vote_drops_pending_too(self, store: InMemoryDocumentStore, voting: VotingCoordinator) -> None:
        await voting.submit_vote_now("g1", "p1", "3")
        await voting.submit_vote("g1", "p1", "5")

        await voting.delete_vote("g1", "p1")
        await asyncio.sleep(0.05)

        assert await voting.get_votes("g1") == []


@pytest.mark.unit
class TestVoteVisibility:
    """Test derived voting views."""

    def test_has_voted(self) -> None:
        votes = [vote("p1", "3")]
        assert has_voted(votes, "p1")
        assert not has_voted(votes, "p2")

    def test_value_hidden_until_revealed(self) -> None:
        votes = [vote("p1", "3")]
        session = GameSessionDocument(id="g1", game_id="g1", name="x", created_by="h", host_id="h")

        assert get_participant_vote(votes, "p1", session) is None

        session.votes_revealed = True
        assert get_participant_vote(votes, "p1", session) == "3"
        assert get_participant_vote(votes, "p2", session) is None

    def test_reveal_readiness_ignores_spectators(self) -> None:
        participants = [participant("p1"), participant("p2"), participant("s1", is_spectator=True)]
        votes = [vote("p1", "3"), vote("s1", "8")]

        readiness = reveal_readiness(votes, participants)

        assert (readiness.voted, readiness.eligible, readiness.ready) == (1, 2, False)
        assert reveal_readiness(votes + [vote("p2", "5")], participants).ready

    def test_not_ready_without_voters(self) -> None:
        assert not reveal_readiness([], [participant("s1", is_spectator=True)]).ready


@pytest.mark.unit
class TestFinalizeEstimate:
    """Test finalizing a round into an estimate."""

    @pytest.fixture
    async def round_in_progress(self, session_service: SessionService, issue_queue: IssueQueue, game):
        game_id = game["game_id"]
        issue_id = await issue_queue.add_issue(game_id, "Login page")
        await session_service.set_current_issue(game_id, issue_id)
        return {**game, "issue_id": issue_id}

    @pytest.mark.asyncio
    async def test_consensus_estimate(
        self, voting: VotingCoordinator, session_service: SessionService, issue_queue: IssueQueue, round_in_progress
    ) -> None:
        game_id = round_in_progress["game_id"]
        await voting.submit_vote_now(game_id, round_in_progress["host_id"], "3")
        await voting.submit_vote_now(game_id, "p2", "3")
        await session_service.reveal_votes(game_id)

        result = await voting.finalize_estimate(game_id)

        assert result.success
        assert result.estimate == "3"
        assert result.stats["consensus"] is True
        [issue] = await issue_queue.get_issues(game_id)
        assert issue.is_estimated and issue.estimate == "3"
        session = await session_service.get_session(game_id)
        assert session.current_issue is None
        assert session.votes_revealed is False
        assert await voting.get_votes(game_id) == []

    @pytest.mark.asyncio
    async def test_median_estimate(self, voting: VotingCoordinator, round_in_progress) -> None:
        game_id = round_in_progress["game_id"]
        for pid, value in (("a", "5"), ("b", "5"), ("c", "8")):
            await voting.submit_vote_now(game_id, pid, value)

        result = await voting.finalize_estimate(game_id)

        assert result.estimate == "5"

    @pytest.mark.asyncio
    async def test_spectator_votes_are_excluded(
        self, voting: VotingCoordinator, session_service: SessionService, round_in_progress
    ) -> None:
        game_id = round_in_progress["game_id"]
        spectator = await session_service.join_session(game_id, "Sam", is_spectator=True)
        await voting.submit_vote_now(game_id, round_in_progress["host_id"], "8")
        await voting.submit_vote_now(game_id, spectator.participant_id, "1")

        result = await voting.finalize_estimate(game_id)

        assert result.estimate == "8"
        assert result.stats["distribution"] == {"8": 1}

    @pytest.mark.asyncio
    async def test_no_votes(self, voting: VotingCoordinator, round_in_progress) -> None:
        result = await voting.finalize_estimate(round_in_progress["game_id"])

        assert not result.success
        assert result.issue_id == round_in_progress["issue_id"]

    @pytest.mark.asyncio
    async def test_no_current_issue(self, voting: VotingCoordinator, game) -> None:
        result = await voting.finalize_estimate(game["game_id"])
        assert not result.success

    @pytest.mark.asyncio
    async def test_unknown_game(self, voting: VotingCoordinator) -> None:
        result = await voting.finalize_estimate("missing")
        assert not result.success
        assert "Game not found" in result.error

    @pytest.mark.asyncio
    async def test_partial_failure_leaves_issue_estimated(
        self,
        store: InMemoryDocumentStore,
        voting: VotingCoordinator,
        session_service: SessionService,
        issue_queue: IssueQueue,
        round_in_progress,
    ) -> None:
        game_id = round_in_progress["game_id"]
        await voting.submit_vote_now(game_id, "a", "5")
        store.fail_next("delete", "votes")

        result = await voting.finalize_estimate(game_id)

        assert not result.success
        assert result.estimate == "5"
        [issue] = await issue_queue.get_issues(game_id)
        assert issue.is_estimated

        # The repair pass finishes the reset
        assert await session_service.repair_session(game_id) == ["reset_voting_round"]
        assert await voting.get_votes(game_id) == []
