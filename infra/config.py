"""
Infrastructure configuration system.

Environment-based backend selection with sensible defaults.
All components default to a free, local-first stack.
"""

import os
from typing import Optional, Literal
from dataclasses import dataclass, field

from inference import ModelBackend, StubModelBackend, OllamaModelBackend
from agent.memory import (
    DisabledProfileStore,
    MemoryConfig,
    ProfileStore,
    SQLiteProfileStore,
    StubProfileStore,
)


LLMBackendType = Literal["stub", "ollama"]
ProfileStoreType = Literal["stub", "sqlite", "disabled"]


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def memory_config_from_env() -> MemoryConfig:
    """Memory limits and windows, overridable per environment variable."""
    defaults = MemoryConfig()
    return MemoryConfig(
        max_history_length=_env_int("MEMORY_MAX_HISTORY", defaults.max_history_length),
        max_topic_history=_env_int("MEMORY_MAX_TOPIC_HISTORY", defaults.max_topic_history),
        max_known_entities=_env_int("MEMORY_MAX_ENTITIES", defaults.max_known_entities),
        expiration_hours=_env_float("MEMORY_EXPIRATION_HOURS", defaults.expiration_hours),
        entity_persistence_threshold=_env_int(
            "MEMORY_ENTITY_PERSISTENCE_THRESHOLD", defaults.entity_persistence_threshold
        ),
        entity_max_age_days=_env_float("MEMORY_ENTITY_MAX_AGE_DAYS", defaults.entity_max_age_days),
        entity_min_confidence=_env_float("MEMORY_ENTITY_MIN_CONFIDENCE", defaults.entity_min_confidence),
        sweep_interval_hours=_env_float("MEMORY_SWEEP_INTERVAL_HOURS", defaults.sweep_interval_hours),
    )


@dataclass
class InfraConfig:
    """Infrastructure configuration from environment."""

    # LLM
    llm_backend: LLMBackendType
    ollama_model: str
    ollama_base_url: str
    model_timeout_s: int

    # Durable store
    profile_store: ProfileStoreType
    sqlite_db_path: str

    # NLP
    catalog_path: Optional[str]
    templates_dir: Optional[str]

    # Memory
    memory: MemoryConfig = field(default_factory=MemoryConfig)

    @classmethod
    def from_env(cls) -> "InfraConfig":
        """
        Load configuration from environment variables.

        Defaults prioritize a free, local-first stack:
        - LLM: ollama (llama3 by default)
        - Durable store: sqlite file
        - Catalog: packaged catalog.yaml
        """
        return cls(
            # LLM Configuration
            llm_backend=os.getenv("LLM_BACKEND", "ollama"),  # type: ignore
            ollama_model=os.getenv("OLLAMA_MODEL", "llama3"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            model_timeout_s=_env_int("MODEL_TIMEOUT_S", 30),

            # Durable store Configuration
            profile_store=os.getenv("PROFILE_STORE", "sqlite"),  # type: ignore
            sqlite_db_path=os.getenv("SQLITE_DB_PATH", "./conversations.db"),

            # NLP Configuration
            catalog_path=os.getenv("CATALOG_PATH") or None,
            templates_dir=os.getenv("TEMPLATES_DIR") or None,

            # Memory Configuration
            memory=memory_config_from_env(),
        )

    def create_llm_backend(self) -> ModelBackend:
        """Create LLM backend instance based on configuration."""
        if self.llm_backend == "stub":
            return StubModelBackend()
        # Default to ollama
        return OllamaModelBackend(
            model_name=self.ollama_model,
            base_url=self.ollama_base_url,
        )

    def create_profile_store(self) -> ProfileStore:
        """Create durable profile/history store based on configuration."""
        if self.profile_store == "stub":
            return StubProfileStore()
        elif self.profile_store == "disabled":
            return DisabledProfileStore()
        # Default to sqlite
        return SQLiteProfileStore(self.sqlite_db_path)


def get_config() -> InfraConfig:
    """Get global infrastructure configuration."""
    return InfraConfig.from_env()
