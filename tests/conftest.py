"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of pianissimo.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402

from pianissimo.database.store import DocumentStore  # noqa: E402
from pianissimo.services.balance_service import InMemoryBalanceRepository  # noqa: E402
from pianissimo.services.broadcaster import EventBroadcaster  # noqa: E402
from pianissimo.services.spin_service import SpinService  # noqa: E402


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


class FixedRng:
    """Stand-in for ``random.Random`` that always returns *value*."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def store(tmp_path) -> DocumentStore:
    """A loaded store seeded with the default document in a temp dir."""
    doc_store = DocumentStore(tmp_path / "database.json")
    doc_store.load()
    return doc_store


@pytest.fixture
def balances() -> InMemoryBalanceRepository:
    return InMemoryBalanceRepository({
        "12345": "Alice P : 100",
        "67890": "Bob P : 30",
    })


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture
def spins(store, balances, broadcaster) -> SpinService:
    """Spin service whose draws always land on the first prize."""
    return SpinService(store, balances, broadcaster, rng=FixedRng(0.0))


def make_token(
    sub: str = "12345",
    username: str = "Alice",
    *,
    is_admin: bool = False,
    **claims,
) -> str:
    """Create a session JWT.  Usable as both a fixture helper and a factory."""
    import jwt

    from pianissimo.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "is_admin": is_admin, **claims},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def admin_token() -> str:
    return make_token("99999", "FixtureAdmin", is_admin=True)


@pytest.fixture
def client(spins):
    """A FastAPI TestClient with raise_server_exceptions=False.

    Entered as a context manager so HTTP requests and websocket sessions
    share one event loop.
    """
    from fastapi.testclient import TestClient

    from pianissimo.api.main import create_app

    with TestClient(create_app(spins), raise_server_exceptions=False) as test_client:
        yield test_client
