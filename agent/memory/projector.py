"""
Context projector.

Turns a live memory record into the read-only ContextView used for prompt
construction. Recomputed on every call; the record is never mutated.
"""

import copy
import logging

from agent.memory.store import ConversationMemoryStore
from agent.memory.types import ContextView, MemoryResult

logger = logging.getLogger(__name__)


class ContextProjector:
    """Read side of the conversational memory."""

    def __init__(self, store: ConversationMemoryStore):
        self.store = store

    def project(self, key: str) -> MemoryResult[ContextView]:
        """
        Build the context view for a conversation.

        Returns:
            ok: view with flattened entities, recent messages, intents and topics
            empty: unregistered empty view (projection failed)
        """
        try:
            record = self.store.get(key)
            config = self.store.config
            state = record.conversation_state

            view = ContextView(
                user_profile=copy.deepcopy(record.user_profile),
                known_entities=record.known_entities.flatten(),
                recent_messages=copy.deepcopy(record.message_history[-config.recent_messages:]),
                recent_intents=[entry.intent for entry in record.intent_history[:config.recent_intents]],
                current_topic=state.current_topic,
                topic_history=[entry.topic.value for entry in record.topic_history[:config.recent_topics]],
                context_strength=state.context_strength,
            )
        except Exception as e:
            logger.error(f"Context projection failed for {key}: {str(e)}")
            return MemoryResult(status="empty", value=ContextView.empty(), error=str(e))

        return MemoryResult(status="ok", value=view)
