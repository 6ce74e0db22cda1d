"""
Abstract durable profile/history store.

The conversational memory is volatile; this boundary is where it is seeded
from (registered users, their recent messages) and where finished messages
are recorded. The memory store depends only on this interface.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from agent.memory.types import MessageEntry, UserProfile


class ProfileStore(ABC):
    """
    Durable user/history boundary.

    Key properties:
    - Implementations MAY raise; the memory store swallows every failure
      and falls back to an empty record
    - get_recent_messages returns messages oldest first
    """

    @abstractmethod
    def find_user_profile(self, conversation_key: str) -> Optional[UserProfile]:
        """
        Look up a registered user.

        Args:
            conversation_key: Normalized phone number

        Returns:
            UserProfile with is_registered=True, or None if unknown
        """
        raise NotImplementedError

    @abstractmethod
    def get_recent_messages(self, conversation_key: str, limit: int) -> List[MessageEntry]:
        """
        Fetch the most recent messages of a conversation.

        Args:
            conversation_key: Normalized phone number
            limit: Maximum number of messages

        Returns:
            Up to `limit` messages, oldest first
        """
        raise NotImplementedError

    @abstractmethod
    def record_message(self, conversation_key: str, message: MessageEntry) -> bool:
        """Persist one message. Returns True on success."""
        raise NotImplementedError

    @abstractmethod
    def register_user(self, conversation_key: str, profile: UserProfile) -> bool:
        """Create or update a registered user. Returns True on success."""
        raise NotImplementedError
