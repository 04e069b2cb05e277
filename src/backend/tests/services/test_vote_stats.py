"""
Tests for vote statistics.
"""

import pytest

from models.documents import VoteDocument
from services.vote_stats import calculate_vote_stats, derive_estimate, format_number


@pytest.mark.unit
class TestCalculateVoteStats:
    """Test calculate_vote_stats."""

    def test_empty_returns_none(self) -> None:
        assert calculate_vote_stats([]) is None

    def test_single_vote_is_never_none(self) -> None:
        stats = calculate_vote_stats(["8"])
        assert stats is not None
        assert stats.consensus is True

    def test_split_vote(self) -> None:
        stats = calculate_vote_stats(["5", "5", "8"])

        assert stats.average == 6.0
        assert stats.median == 5
        assert stats.mode == ["5"]
        assert stats.distribution == {"5": 2, "8": 1}
        assert stats.consensus is False

    def test_unanimous_vote(self) -> None:
        stats = calculate_vote_stats(["3", "3", "3"])

        assert stats.consensus is True
        assert stats.mode == ["3"]

    def test_average_rounds_to_one_decimal(self) -> None:
        # 1 + 2 + 2 = 5 / 3 = 1.666...
        assert calculate_vote_stats(["1", "2", "2"]).average == 1.7
        # 0.25 rounds half up
        assert calculate_vote_stats(["0", "0", "0", "1"]).average == 0.3

    def test_even_median_is_mean_of_middle_pair(self) -> None:
        assert calculate_vote_stats(["3", "8", "1", "5"]).median == 4.0

    def test_tied_modes_in_first_seen_order(self) -> None:
        stats = calculate_vote_stats(["8", "3", "3", "8", "13"])

        assert stats.mode == ["8", "3"]
        assert stats.consensus is False

    def test_escape_cards_count_in_distribution_not_average(self) -> None:
        stats = calculate_vote_stats(["5", "?", "☕", "8"])

        assert stats.average == 6.5
        assert stats.median == 6.5
        assert stats.distribution == {"5": 1, "?": 1, "☕": 1, "8": 1}
        assert stats.total_votes == 4

    def test_escape_card_breaks_consensus(self) -> None:
        assert calculate_vote_stats(["5", "5", "?"]).consensus is False

    def test_only_escape_cards(self) -> None:
        stats = calculate_vote_stats(["?", "☕", "?"])

        assert stats.average == 0
        assert stats.median == 0
        assert stats.mode == []
        assert stats.consensus is False
        assert stats.distribution == {"?": 2, "☕": 1}

    def test_accepts_documents_and_dicts(self) -> None:
        votes = [
            VoteDocument(id="p1", game_id="g1", participant_id="p1", value="2"),
            {"value": "2"},
        ]
        assert calculate_vote_stats(votes).consensus is True

    def test_to_dict(self) -> None:
        data = calculate_vote_stats(["1", "2"]).to_dict()
        assert set(data) == {"average", "median", "mode", "distribution", "consensus"}


@pytest.mark.unit
class TestDeriveEstimate:
    """Test estimate derivation."""

    def test_consensus_uses_agreed_value(self) -> None:
        assert derive_estimate(calculate_vote_stats(["13", "13"])) == "13"

    def test_no_consensus_uses_median(self) -> None:
        assert derive_estimate(calculate_vote_stats(["5", "5", "8"])) == "5"

    def test_fractional_median(self) -> None:
        assert derive_estimate(calculate_vote_stats(["3", "8"])) == "5.5"

    def test_format_number(self) -> None:
        assert format_number(4.0) == "4"
        assert format_number(2.5) == "2.5"
