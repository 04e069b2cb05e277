"""
Reaction channel.

Emoji throws between participants. Throws are rate limited per sender
(a short cooldown plus a per-minute cap) and readers only ever see the
newest few, so the channel behaves like a capped event log.
"""

from typing import Callable, Iterable, Optional

import structlog

from core.config import settings
from core.exceptions import RateLimitedError, StoreFailureError
from db.store import DocumentStore, Subscription
from models.documents import ReactionDocument, now_ms
from repositories import ReactionRepository
from schemas.results import ThrowResult
from services.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

COOLDOWN_MESSAGE = "Please wait before sending another emoji"
SEND_FAILED_MESSAGE = "Failed to send emoji"


def emoji_rate_limit_key(game_id: str, participant_id: str) -> str:
    return f"emoji-{game_id}-{participant_id}"


class ReactionChannel:
    """
    Rate-limited emoji throws for one client.

    The limiter is owned by the channel instance; two clients never share
    rate-limit history.
    """

    def __init__(
        self,
        store: DocumentStore,
        rate_limiter: Optional[RateLimiter] = None,
        cooldown_ms: Optional[int] = None,
        max_per_minute: Optional[int] = None,
        window_size: Optional[int] = None,
    ):
        self.store = store
        self.reactions = ReactionRepository(store)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cooldown_ms = settings.EMOJI_THROW_COOLDOWN_MS if cooldown_ms is None else cooldown_ms
        self.max_per_minute = settings.MAX_EMOJIS_PER_MINUTE if max_per_minute is None else max_per_minute
        self.window_size = settings.REACTION_WINDOW_SIZE if window_size is None else window_size

    def check_rate_limit(self, game_id: str, from_id: str) -> None:
        """
        Gate one throw.

        The cooldown is checked first and never records anything; only a
        throw past the cooldown reaches the per-minute cap, which records it.

        Raises:
            RateLimitedError: With `retry_after_ms` set for cooldown rejections
        """
        key = emoji_rate_limit_key(game_id, from_id)

        remaining = self.rate_limiter.get_cooldown_remaining(key, self.cooldown_ms)
        if remaining > 0:
            raise RateLimitedError(COOLDOWN_MESSAGE, retry_after_ms=remaining)

        if not self.rate_limiter.is_action_allowed(key, self.max_per_minute):
            raise RateLimitedError(f"You can only send {self.max_per_minute} emojis per minute")

    async def throw_emoji(self, game_id: str, from_id: str, to_id: str, emoji: str) -> ThrowResult:
        """Throw an emoji. Rejections and store failures come back as a failed result."""
        try:
            self.check_rate_limit(game_id, from_id)
        except RateLimitedError as e:
            logger.info("emoji_rate_limited", game_id=game_id, from_id=from_id, reason=str(e))
            return ThrowResult(success=False, error=str(e), cooldown_ms=e.retry_after_ms)

        try:
            await self.reactions.add(game_id, from_id, to_id, emoji, timestamp=now_ms())
        except StoreFailureError as e:
            logger.error("emoji_throw_failed", game_id=game_id, from_id=from_id, error=str(e))
            return ThrowResult(success=False, error=SEND_FAILED_MESSAGE)

        return ThrowResult(success=True)

    def get_emoji_cooldown(self, game_id: str, participant_id: str) -> int:
        """Milliseconds until the participant may throw again."""
        return self.rate_limiter.get_cooldown_remaining(
            emoji_rate_limit_key(game_id, participant_id), self.cooldown_ms
        )

    async def get_recent(self, game_id: str) -> list[ReactionDocument]:
        return await self.reactions.recent(game_id, self.window_size)

    async def listen_to_reactions(
        self,
        game_id: str,
        callback: Callable[[list[ReactionDocument]], None],
    ) -> Subscription:
        """Newest-first snapshots of the last `window_size` reactions."""
        return await self.reactions.listen(game_id, callback, limit=self.window_size)


class ReactionDeduplicator:
    """
    Remembers which reactions a client has already played.

    A reaction stays in the "last N" window across several snapshots until
    newer ones push it out; without this it would be replayed each time.
    Once pushed out it never comes back, so ids missing from the last
    `retain_snapshots` non-empty snapshots are forgotten.
    """

    def __init__(self, retain_snapshots: int = 3) -> None:
        self.retain_snapshots = retain_snapshots
        # reaction id -> snapshot generation it was last seen in
        self._processed: dict[str, int] = {}
        self._generation = 0

    def filter_new(self, reactions: Iterable[ReactionDocument]) -> list[ReactionDocument]:
        """Unseen reactions, oldest first. Marks them as processed."""
        reactions = list(reactions)
        fresh = [r for r in reactions if r.id not in self._processed]
        if reactions:
            # Empty snapshots (failed listens) must not age anything out
            self._generation += 1
            for r in reactions:
                self._processed[r.id] = self._generation
            self._prune()
        return sorted(fresh, key=lambda r: r.timestamp)

    def _prune(self) -> None:
        oldest = self._generation - self.retain_snapshots
        for reaction_id in [rid for rid, seen in self._processed.items() if seen <= oldest]:
            del self._processed[reaction_id]

    def __contains__(self, reaction_id: str) -> bool:
        return reaction_id in self._processed

    def __len__(self) -> int:
        return len(self._processed)

    def clear(self) -> None:
        self._processed.clear()
