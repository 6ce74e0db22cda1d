"""
Infrastructure module exports.

Configuration and bootstrap for all service backends.
"""

from .config import InfraConfig, get_config, memory_config_from_env, LLMBackendType, ProfileStoreType
from .bootstrap import InfraBootstrap, bootstrap_infrastructure

__all__ = [
    "InfraConfig",
    "get_config",
    "memory_config_from_env",
    "LLMBackendType",
    "ProfileStoreType",
    "InfraBootstrap",
    "bootstrap_infrastructure",
]
