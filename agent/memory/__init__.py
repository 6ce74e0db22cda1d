"""
Memory module exports.

Clean interface for the conversation engine to import memory components.
"""

from agent.memory.base import ProfileStore
from agent.memory.stub import StubProfileStore, DisabledProfileStore
from agent.memory.sqlite import SQLiteProfileStore
from agent.memory.entities import EntityConfidenceStore
from agent.memory.record import MemoryRecord
from agent.memory.topics import TopicTracker, classify, intents_for_topic
from agent.memory.store import ConversationMemoryStore
from agent.memory.projector import ContextProjector
from agent.memory.sweeper import MemorySweeper
from agent.memory.types import (
    ContextView,
    ConversationState,
    Intent,
    IntentEntry,
    KnownEntity,
    MemoryConfig,
    MemoryDelta,
    MemoryResult,
    MessageEntry,
    Topic,
    TopicEntry,
    UserProfile,
)

__all__ = [
    # Durable boundary
    "ProfileStore",
    "StubProfileStore",
    "DisabledProfileStore",
    "SQLiteProfileStore",
    # Conversational memory
    "EntityConfidenceStore",
    "MemoryRecord",
    "TopicTracker",
    "classify",
    "intents_for_topic",
    "ConversationMemoryStore",
    "ContextProjector",
    "MemorySweeper",
    # Types
    "ContextView",
    "ConversationState",
    "Intent",
    "IntentEntry",
    "KnownEntity",
    "MemoryConfig",
    "MemoryDelta",
    "MemoryResult",
    "MessageEntry",
    "Topic",
    "TopicEntry",
    "UserProfile",
]
