"""Repository modules for game document access."""

from repositories.issue_repository import IssueRepository
from repositories.participant_repository import ParticipantRepository
from repositories.reaction_repository import ReactionRepository
from repositories.session_repository import SessionRepository
from repositories.vote_repository import VoteRepository

__all__ = [
    "SessionRepository",
    "ParticipantRepository",
    "VoteRepository",
    "IssueRepository",
    "ReactionRepository",
]
