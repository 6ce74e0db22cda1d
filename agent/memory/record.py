"""Per-user conversational memory record."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List

from agent.memory.entities import EntityConfidenceStore
from agent.memory.types import (
    ConversationState,
    IntentEntry,
    MemoryConfig,
    MessageEntry,
    TopicEntry,
    UserProfile,
    utcnow,
)


@dataclass
class MemoryRecord:
    """
    Aggregate root of the conversational memory, one per ConversationKey.

    Invariants:
    - message_history, intent_history and topic_history never exceed
      their configured maximum length
    - intent_history and topic_history are most-recent-first
    - message_history is chronological (oldest evicted first)
    """

    key: str
    user_profile: UserProfile
    known_entities: EntityConfidenceStore
    message_history: List[MessageEntry] = field(default_factory=list)
    intent_history: List[IntentEntry] = field(default_factory=list)
    topic_history: List[TopicEntry] = field(default_factory=list)
    conversation_state: ConversationState = field(default_factory=ConversationState)
    last_update: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def empty(
        cls,
        key: str,
        config: MemoryConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> "MemoryRecord":
        """Unregistered record with no history."""
        now = clock()
        return cls(
            key=key,
            user_profile=UserProfile(is_registered=False),
            known_entities=EntityConfidenceStore(
                persistence_threshold=config.entity_persistence_threshold,
                max_entities=config.max_known_entities,
                clock=clock,
            ),
            last_update=now,
            created_at=now,
        )
