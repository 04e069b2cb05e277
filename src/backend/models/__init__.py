"""Game document models module."""

from models.documents import (
    BREAK_VOTE,
    NON_NUMERIC_VOTES,
    UNKNOWN_VOTE,
    GameDocument,
    GameSessionDocument,
    IssueDocument,
    ParticipantDocument,
    ReactionDocument,
    VoteDocument,
)

__all__ = [
    "GameDocument",
    "GameSessionDocument",
    "ParticipantDocument",
    "IssueDocument",
    "VoteDocument",
    "ReactionDocument",
    "UNKNOWN_VOTE",
    "BREAK_VOTE",
    "NON_NUMERIC_VOTES",
]
