"""
Infrastructure initialization and bootstrap.

Singleton pattern for wiring the conversation engine from configuration.
"""

import logging
from typing import Optional

from inference import ModelBackend
from agent.memory import MemorySweeper, ProfileStore
from agent.nlp import NLPCatalog, load_catalog
from agent.orchestrator import ConversationEngine

from .config import InfraConfig, get_config

logger = logging.getLogger(__name__)


class InfraBootstrap:
    """
    Bootstrap infrastructure based on configuration.

    Singleton pattern - single instance per process.
    A missing or invalid catalog raises CatalogError here, at startup.
    """

    _instance: Optional["InfraBootstrap"] = None

    def __init__(self, config: Optional[InfraConfig] = None):
        """Initialize bootstrap with configuration."""
        self.config = config or get_config()
        self.catalog: NLPCatalog = load_catalog(self.config.catalog_path)
        self.llm_backend = self.config.create_llm_backend()
        self.profile_store = self.config.create_profile_store()
        self.engine = ConversationEngine(
            catalog=self.catalog,
            model_backend=self.llm_backend,
            profile_store=self.profile_store,
            memory_config=self.config.memory,
            templates_dir=self.config.templates_dir,
            model_timeout_s=self.config.model_timeout_s,
        )
        self.sweeper = MemorySweeper(self.engine.memory)
        logger.info(f"Infrastructure ready: {self!r}")

    @classmethod
    def get_instance(cls, config: Optional[InfraConfig] = None) -> "InfraBootstrap":
        """
        Get singleton instance.

        Args:
            config: Optional custom configuration (only used first time)

        Returns:
            Singleton InfraBootstrap instance
        """
        if cls._instance is None:
            cls._instance = cls(config)
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def get_llm_backend(self) -> ModelBackend:
        """Get LLM backend."""
        return self.llm_backend

    def get_profile_store(self) -> ProfileStore:
        """Get durable profile/history store."""
        return self.profile_store

    def get_engine(self) -> ConversationEngine:
        """Get the conversation engine."""
        return self.engine

    def __repr__(self) -> str:
        """String representation showing configured backends."""
        return (
            f"InfraBootstrap(llm={self.config.llm_backend}, "
            f"profile_store={self.config.profile_store}, "
            f"intents={len(self.catalog.intents)})"
        )


def bootstrap_infrastructure(config: Optional[InfraConfig] = None) -> InfraBootstrap:
    """
    Bootstrap all infrastructure backends.

    Args:
        config: Optional custom configuration

    Returns:
        InfraBootstrap instance with the engine wired
    """
    return InfraBootstrap.get_instance(config)
