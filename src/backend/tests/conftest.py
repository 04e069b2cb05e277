"""
Pytest fixtures for planning poker backend tests.
"""

import os

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SUBSCRIPTION_POLL_INTERVAL_MS", "10")

from db.memory_store import InMemoryDocumentStore  # noqa: E402
from services.identity_store import MemoryIdentityStore  # noqa: E402
from services.issue_service import IssueQueue  # noqa: E402
from services.rate_limiter import RateLimiter  # noqa: E402
from services.reaction_service import ReactionChannel  # noqa: E402
from services.session_service import SessionService  # noqa: E402
from services.voting_service import VotingCoordinator  # noqa: E402


class FakeClock:
    """Manually advanced millisecond clock for rate-limit tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


@pytest.fixture
def session_service(store: InMemoryDocumentStore) -> SessionService:
    return SessionService(store)


@pytest.fixture
def voting(store: InMemoryDocumentStore, session_service: SessionService) -> VotingCoordinator:
    """Coordinator with a short debounce so timer tests stay fast."""
    return VotingCoordinator(store, session_service, debounce_ms=20)


@pytest.fixture
def issue_queue(store: InMemoryDocumentStore, session_service: SessionService) -> IssueQueue:
    return IssueQueue(store, session_service)


@pytest.fixture
def reaction_channel(store: InMemoryDocumentStore, rate_limiter: RateLimiter) -> ReactionChannel:
    return ReactionChannel(
        store,
        rate_limiter=rate_limiter,
        cooldown_ms=500,
        max_per_minute=10,
        window_size=10,
    )


@pytest.fixture
def identity_store() -> MemoryIdentityStore:
    return MemoryIdentityStore()


@pytest.fixture
async def game(session_service: SessionService) -> dict[str, str]:
    """A game created by host Alice."""
    result = await session_service.create_session("Alice")
    return {"game_id": result.game_id, "host_id": result.participant_id}
