"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from agent.memory import ConversationMemoryStore, MemoryConfig, StubProfileStore  # noqa: E402
from agent.nlp import load_catalog  # noqa: E402


class FakeClock:
    """Manually advanced clock for time-dependent memory behavior."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def catalog():
    """Packaged catalog, loaded once."""
    return load_catalog()


@pytest.fixture
def profile_store():
    return StubProfileStore()


@pytest.fixture
def memory(profile_store, clock):
    return ConversationMemoryStore(profile_store, MemoryConfig(), clock=clock)
