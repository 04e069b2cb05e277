"""
Client-local identity.

Two opaque tokens survive restarts: the game the client last joined and
the participant id it holds in that game. Their presence or absence
drives the re-join flow in the game client.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from core.config import settings

logger = logging.getLogger(__name__)


class LocalIdentity(BaseModel):
    current_game_id: Optional[str] = None
    current_participant_id: Optional[str] = None

    def is_member_of(self, game_id: str) -> bool:
        return self.current_game_id == game_id and self.current_participant_id is not None


class IdentityStore(ABC):
    """Persistence for the local identity tokens."""

    @abstractmethod
    def load(self) -> LocalIdentity:
        """Return the stored identity (empty when nothing is stored)."""

    @abstractmethod
    def save(self, identity: LocalIdentity) -> None:
        """Replace the stored identity."""

    def remember(self, game_id: str, participant_id: str) -> None:
        self.save(LocalIdentity(current_game_id=game_id, current_participant_id=participant_id))

    def forget_participant(self, game_id: str) -> None:
        """Drop the participant id but keep the game, so a re-join knows where to go."""
        self.save(LocalIdentity(current_game_id=game_id))


class MemoryIdentityStore(IdentityStore):
    def __init__(self, identity: Optional[LocalIdentity] = None):
        self._identity = identity or LocalIdentity()

    def load(self) -> LocalIdentity:
        return self._identity.model_copy()

    def save(self, identity: LocalIdentity) -> None:
        self._identity = identity.model_copy()


class FileIdentityStore(IdentityStore):
    """Identity kept as a small JSON file (IDENTITY_FILE by default)."""

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path or settings.IDENTITY_FILE).expanduser()

    def load(self) -> LocalIdentity:
        if not self.path.exists():
            return LocalIdentity()
        try:
            return LocalIdentity.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable identity file {self.path}: {e}")
            return LocalIdentity()

    def save(self, identity: LocalIdentity) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(identity.model_dump_json(), encoding="utf-8")
