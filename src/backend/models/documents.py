"""
Document models for planning poker games.

These Pydantic models define the document structure kept in the shared
document store. Every game is a root session document plus four child
collections addressed by game id.

Collection Strategy:
- sessions: One document per game (partition: /game_id, id == game_id)
- participants: One document per member (partition: /game_id, id == participant id)
- votes: One live vote per participant (partition: /game_id, id == participant id)
- issues: Backlog items (partition: /game_id)
- reactions: Append-only emoji throws (partition: /game_id, auto id)
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Voting deck and palette
# ============================================================================

UNKNOWN_VOTE = "?"
BREAK_VOTE = "☕"

VOTE_VALUES: tuple[str, ...] = (
    "0",
    "1",
    "2",
    "3",
    "5",
    "8",
    "13",
    "21",
    "34",
    UNKNOWN_VOTE,
    BREAK_VOTE,
)

NON_NUMERIC_VOTES = frozenset({UNKNOWN_VOTE, BREAK_VOTE})

PARTICIPANT_COLORS: tuple[str, ...] = (
    "#ef4444",  # red
    "#f59e0b",  # amber
    "#10b981",  # emerald
    "#3b82f6",  # blue
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#14b8a6",  # teal
    "#f97316",  # orange
)


def get_avatar_color(index: int) -> str:
    """Palette colour for the participant that joined at position `index`."""
    return PARTICIPANT_COLORS[index % len(PARTICIPANT_COLORS)]


def get_initials(name: str) -> str:
    """Up to two upper-cased initials from a display name."""
    return "".join(word[0] for word in name.split() if word).upper()[:2]


def get_avatar(name: str) -> str:
    """Avatar text: initials, or the first character for odd names."""
    return get_initials(name) or name[:1].upper()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Wall-clock epoch milliseconds (reaction timestamps)."""
    return int(utc_now().timestamp() * 1000)


# ============================================================================
# Base Document Model
# ============================================================================


class GameDocument(BaseModel):
    """
    Base class for game documents.

    All documents have:
    - id: Unique identifier within the game
    - game_id: Partition key shared by every document of one game
    """

    # Allow extra fields for store system properties (_ts, _etag, etc.)
    model_config = ConfigDict(extra="allow")

    id: str
    game_id: str


# ============================================================================
# Session Documents
# ============================================================================


class GameSessionDocument(GameDocument):
    """
    Root document of a game.

    host_id is matched by identity when checking host privileges; removing
    the host participant does not touch it.
    """

    name: str
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str
    current_issue: Optional[str] = None
    votes_revealed: bool = False
    host_id: str

    @property
    def is_voting_open(self) -> bool:
        return self.current_issue is not None and not self.votes_revealed


class ParticipantDocument(GameDocument):
    """One member of a game. Deleted on leave or removal."""

    name: str
    avatar: str
    color: str
    joined_at: datetime = Field(default_factory=utc_now)
    is_host: bool = False
    is_spectator: bool = False


# ============================================================================
# Issue and Vote Documents
# ============================================================================


class IssueDocument(GameDocument):
    """
    A backlog item to estimate.

    `order` is the insertion index; it is never renumbered on delete.
    """

    title: str
    description: Optional[str] = None
    estimate: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    is_estimated: bool = False
    order: int = 0


class VoteDocument(GameDocument):
    """
    A participant's vote for the current round.

    Keyed by participant id, so re-submitting overwrites the previous vote.
    """

    participant_id: str
    value: str
    submitted_at: datetime = Field(default_factory=utc_now)

    @property
    def is_numeric(self) -> bool:
        return self.value not in NON_NUMERIC_VOTES


# ============================================================================
# Reaction Documents
# ============================================================================


class ReactionDocument(GameDocument):
    """
    An emoji thrown from one participant to another.

    Never updated. Readers only ever see the newest few, ordered by
    timestamp (epoch milliseconds).
    """

    from_id: str
    to_id: str
    emoji: str
    timestamp: int = Field(default_factory=now_ms)
