"""
Infrastructure configuration and bootstrap tests.

Backends are selected from environment variables; the bootstrap wires the
engine and the sweeper once per process.
"""

import pytest

from agent.memory import DisabledProfileStore, SQLiteProfileStore, StubProfileStore
from agent.nlp import CatalogError
from agent.orchestrator import ConversationEngine
from inference import OllamaModelBackend, StubModelBackend
from infra import InfraBootstrap, InfraConfig, memory_config_from_env


@pytest.fixture(autouse=True)
def reset_singleton():
    InfraBootstrap.reset()
    yield
    InfraBootstrap.reset()


class TestInfraConfig:

    def test_defaults(self, monkeypatch):
        for name in ("LLM_BACKEND", "PROFILE_STORE", "OLLAMA_MODEL", "CATALOG_PATH", "MEMORY_MAX_HISTORY"):
            monkeypatch.delenv(name, raising=False)

        config = InfraConfig.from_env()
        assert config.llm_backend == "ollama"
        assert config.ollama_model == "llama3"
        assert config.profile_store == "sqlite"
        assert config.catalog_path is None
        assert config.memory.max_history_length == 10

    def test_memory_overrides(self, monkeypatch):
        monkeypatch.setenv("MEMORY_MAX_HISTORY", "6")
        monkeypatch.setenv("MEMORY_EXPIRATION_HOURS", "0.5")

        config = memory_config_from_env()
        assert config.max_history_length == 6
        assert config.expiration_hours == 0.5

    @pytest.mark.parametrize("name,expected", [
        ("stub", StubModelBackend),
        ("ollama", OllamaModelBackend),
    ])
    def test_llm_backend_selection(self, monkeypatch, name, expected):
        monkeypatch.setenv("LLM_BACKEND", name)
        assert isinstance(InfraConfig.from_env().create_llm_backend(), expected)

    @pytest.mark.parametrize("name,expected", [
        ("stub", StubProfileStore),
        ("disabled", DisabledProfileStore),
        ("sqlite", SQLiteProfileStore),
    ])
    def test_profile_store_selection(self, monkeypatch, tmp_path, name, expected):
        monkeypatch.setenv("PROFILE_STORE", name)
        monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "conversations.db"))
        assert isinstance(InfraConfig.from_env().create_profile_store(), expected)


class TestInfraBootstrap:

    def test_wires_engine(self, monkeypatch):
        monkeypatch.setenv("LLM_BACKEND", "stub")
        monkeypatch.setenv("PROFILE_STORE", "stub")
        monkeypatch.delenv("CATALOG_PATH", raising=False)

        bootstrap = InfraBootstrap.get_instance()
        engine = bootstrap.get_engine()

        assert isinstance(engine, ConversationEngine)
        assert isinstance(bootstrap.get_llm_backend(), StubModelBackend)
        assert isinstance(bootstrap.get_profile_store(), StubProfileStore)
        assert bootstrap.sweeper.store is engine.memory
        assert InfraBootstrap.get_instance() is bootstrap
        assert "llm=stub" in repr(bootstrap)

    def test_missing_catalog_fails_at_startup(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LLM_BACKEND", "stub")
        monkeypatch.setenv("PROFILE_STORE", "stub")
        monkeypatch.setenv("CATALOG_PATH", str(tmp_path / "nope.yaml"))

        with pytest.raises(CatalogError):
            InfraBootstrap.get_instance()
