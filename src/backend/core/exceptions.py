"""
Planning poker error taxonomy.

Mutating operations either raise one of these or report it as a failed
result model (see schemas.results). Subscription failures never raise;
they degrade to an empty snapshot.
"""

from typing import Optional


class PlanningPokerError(Exception):
    """Base exception for planning poker operations."""

    pass


class GameNotFoundError(PlanningPokerError):
    """Referenced game session does not exist."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game not found: {game_id}")


class RateLimitedError(PlanningPokerError):
    """Cooldown or per-minute cap exceeded."""

    def __init__(self, message: str, retry_after_ms: Optional[int] = None):
        self.retry_after_ms = retry_after_ms
        super().__init__(message)


class StoreFailureError(PlanningPokerError):
    """Underlying document store operation was rejected."""

    def __init__(self, operation: str, collection: str, message: str = ""):
        self.operation = operation
        self.collection = collection
        detail = f": {message}" if message else ""
        super().__init__(f"Store {operation} on '{collection}' failed{detail}")


class DocumentNotFoundError(StoreFailureError):
    """Partial update targeted a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.doc_id = doc_id
        super().__init__("update", collection, f"document {doc_id} does not exist")


class StaleIdentityError(PlanningPokerError):
    """Locally cached participant is no longer a member of the game."""

    def __init__(self, game_id: str, participant_id: Optional[str]):
        self.game_id = game_id
        self.participant_id = participant_id
        super().__init__(
            f"Participant {participant_id or '<none>'} is not a member of game {game_id}"
        )


class HostOnlyError(PlanningPokerError):
    """A host action was attempted by a participant who is not the host."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Only the host can {action}")
