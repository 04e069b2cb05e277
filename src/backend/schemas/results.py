"""
Result schemas for mutating operations.

Operations whose failures are part of normal play (joining a game that
does not exist, being rate limited, finalizing an empty round) report
them as values instead of raising.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CreateResult(BaseModel):
    """Identifiers of a freshly created game and its host."""

    game_id: str
    participant_id: str


class JoinResult(BaseModel):
    """Outcome of joining an existing game."""

    success: bool
    participant_id: Optional[str] = None
    error: Optional[str] = None


class ThrowResult(BaseModel):
    """Outcome of throwing an emoji."""

    success: bool
    error: Optional[str] = None
    cooldown_ms: Optional[int] = Field(
        None, description="Milliseconds until the sender may throw again (cooldown rejections only)"
    )


class FinalizeResult(BaseModel):
    """Outcome of finalizing the current issue's estimate."""

    success: bool
    issue_id: Optional[str] = None
    estimate: Optional[str] = None
    stats: Optional[dict] = None
    error: Optional[str] = None


class RevealReadiness(BaseModel):
    """How many eligible (non-spectator) participants have voted."""

    voted: int
    eligible: int

    @property
    def ready(self) -> bool:
        return self.eligible > 0 and self.voted >= self.eligible
