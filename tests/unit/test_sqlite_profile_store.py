"""
SQLite profile store tests.

Validates that the SQLite durable store:
1. Is swappable with StubProfileStore (same interface)
2. Persists users and messages across instances (file databases)
3. Returns history oldest first, bounded by limit
4. Seeds the memory store the same way the stub does
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from agent.memory import (
    ConversationMemoryStore,
    MemoryConfig,
    MessageEntry,
    ProfileStore,
    SQLiteProfileStore,
    StubProfileStore,
    UserProfile,
)

KEY = "5215550005"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _message(text, from_user=True, **kwargs):
    return MessageEntry(content=text, is_from_user=from_user, timestamp=T0, **kwargs)


class TestInterfaceCompatibility:
    """SQLite must be a drop-in replacement for the stub."""

    @pytest.mark.parametrize("store", [StubProfileStore(), SQLiteProfileStore()])
    def test_same_results(self, store):
        assert isinstance(store, ProfileStore)
        assert store.find_user_profile(KEY) is None
        assert store.get_recent_messages(KEY, 5) == []

        assert store.register_user(KEY, UserProfile(name="Ana", email="ana@acme.com"))
        assert store.record_message(KEY, _message("Hola", intents=["saludo"]))

        profile = store.find_user_profile(KEY)
        assert profile.is_registered is True
        assert profile.name == "Ana"
        assert [m.content for m in store.get_recent_messages(KEY, 5)] == ["Hola"]


class TestPersistence:

    def test_survives_new_instance(self, tmp_path):
        db_path = str(Path(tmp_path) / "conversations.db")
        first = SQLiteProfileStore(db_path)
        first.register_user(KEY, UserProfile(
            name="Ana",
            company="Acme",
            registration_date=T0,
            attributes={"plan": "pyme"},
        ))
        first.record_message(KEY, _message("Quiero una prueba", intents=["solicitud_prueba"]))
        first.record_message(KEY, _message("¡Claro!", from_user=False))

        second = SQLiteProfileStore(db_path)
        profile = second.find_user_profile(KEY)
        assert profile.company == "Acme"
        assert profile.registration_date == T0
        assert profile.attributes == {"plan": "pyme"}
        assert profile.last_activity == T0

        history = second.get_recent_messages(KEY, 10)
        assert [m.is_from_user for m in history] == [True, False]
        assert history[0].intents == ["solicitud_prueba"]

    def test_history_oldest_first_and_limited(self):
        store = SQLiteProfileStore()
        for i in range(8):
            store.record_message(KEY, _message(f"m{i}", entities={"monto": str(i)}))

        history = store.get_recent_messages(KEY, 3)
        assert [m.content for m in history] == ["m5", "m6", "m7"]
        assert history[-1].entities == {"monto": "7"}
        assert store.get_recent_messages(KEY, 0) == []

    def test_register_twice_updates(self):
        store = SQLiteProfileStore()
        store.register_user(KEY, UserProfile(name="Ana"))
        store.register_user(KEY, UserProfile(name="Ana María", position="CTO"))

        profile = store.find_user_profile(KEY)
        assert profile.name == "Ana María"
        assert profile.position == "CTO"


class TestFailureSemantics:

    def test_write_failure_returns_false(self):
        store = SQLiteProfileStore()
        store._shared_conn.execute("DROP TABLE messages")
        assert store.record_message(KEY, _message("Hola")) is False

    def test_read_failure_raises_and_memory_degrades(self):
        store = SQLiteProfileStore()
        store._shared_conn.execute("DROP TABLE users")

        with pytest.raises(sqlite3.Error):
            store.find_user_profile(KEY)

        memory = ConversationMemoryStore(store, MemoryConfig())
        result = memory.initialize(KEY)
        assert result.status == "empty"
        assert result.value.user_profile.is_registered is False

    def test_seeds_memory_store(self):
        store = SQLiteProfileStore()
        store.register_user(KEY, UserProfile(name="Ana", email="ana@acme.com"))
        store.record_message(KEY, _message("Hola"))

        record = ConversationMemoryStore(store, MemoryConfig()).get(KEY)
        assert record.known_entities.flatten() == {"nombre": "Ana", "email": "ana@acme.com"}
        assert [m.content for m in record.message_history] == ["Hola"]
