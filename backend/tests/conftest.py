"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings are read once at import time, so the test environment has to be in
# place before anything under studydeck is imported
TEST_ENV = {
    "STORAGE_BACKEND": "memory",
    "STORAGE_KEY_PREFIX": "studydeck-test",
    "DEBUG": "false",
    "REDIS_URL": "redis://localhost:6379/1",
    "DATABASE_URL": "sqlite://",
}
os.environ.update(TEST_ENV)

from studydeck.db.base import MemoryBackend  # noqa: E402
from studydeck.enums.learning import CardOrigin  # noqa: E402
from studydeck.models.learning import (  # noqa: E402
    CandidateCard,
    Flashcard,
    SchedulerConfig,
)
from studydeck.services.learning.card_store import CardStore  # noqa: E402
from studydeck.services.learning.session_service import SessionService  # noqa: E402


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Keep the test environment variables set for the whole session.

    Restores the original environment afterwards.
    """
    original_env = os.environ.copy()
    os.environ.update(TEST_ENV)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Time and Configuration
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """A fixed review time (mid-morning UTC)."""
    return datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    """Default scheduler configuration (10 min / 1 day ladder)."""
    return SchedulerConfig()


# ============================================================================
# Cards
# ============================================================================


@pytest.fixture
def make_card(now):
    """Factory for flashcards due at ``now`` unless overridden."""

    def _make(question: str = "What is a closure?", **overrides) -> Flashcard:
        data = {
            "question": question,
            "answer": "A function bundled with its lexical environment.",
            "origin": CardOrigin.MANUAL,
            "next_review_at": now,
            "created_at": now,
        }
        data.update(overrides)
        return Flashcard(**data)

    return _make


@pytest.fixture
def make_candidate():
    """Factory for valid candidate cards."""

    def _make(question: str = "What is a closure?", **overrides) -> CandidateCard:
        data = {
            "question": question,
            "answer": "A function bundled with its lexical environment.",
            "origin": CardOrigin.HEURISTIC_HEADING,
        }
        data.update(overrides)
        return CandidateCard(**data)

    return _make


# ============================================================================
# Storage and Services
# ============================================================================


@pytest.fixture
def memory_backend() -> MemoryBackend:
    """Unlimited in-memory backend."""
    return MemoryBackend()


@pytest.fixture
def store(memory_backend) -> CardStore:
    """Card store on a fresh in-memory backend."""
    return CardStore(memory_backend, key_prefix="test")


@pytest.fixture
def session_service(store) -> SessionService:
    """Strict session service so invalid transitions raise."""
    return SessionService(store, strict=True)


@pytest.fixture
def mock_redis() -> MagicMock:
    """
    Mock synchronous Redis client backed by a dict.

    Supports get/set/delete/scan_iter/close.
    """
    data: dict[str, str] = {}
    client = MagicMock()
    client.get.side_effect = data.get
    client.set.side_effect = lambda key, value: data.__setitem__(key, value)
    client.delete.side_effect = lambda key: data.pop(key, None)
    client.scan_iter.side_effect = lambda match="*": [
        key for key in list(data) if key.startswith(match.rstrip("*"))
    ]
    client.store = data
    return client
