"""
Stub profile stores for testing and CI.

In-memory, deterministic, no external dependencies.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from agent.memory.base import ProfileStore
from agent.memory.types import MessageEntry, UserProfile


class StubProfileStore(ProfileStore):
    """
    Deterministic fake durable store.

    Properties:
    - Users and messages kept in dicts keyed by conversation key
    - Deterministic: same input → same output
    - Registered profiles are always returned with is_registered=True
    """

    def __init__(self):
        self.users: Dict[str, UserProfile] = {}
        self.messages: Dict[str, List[MessageEntry]] = {}

    def find_user_profile(self, conversation_key: str) -> Optional[UserProfile]:
        profile = self.users.get(conversation_key)
        if profile is None:
            return None
        return replace(profile, attributes=dict(profile.attributes))

    def get_recent_messages(self, conversation_key: str, limit: int) -> List[MessageEntry]:
        history = self.messages.get(conversation_key, [])
        if limit <= 0:
            return []
        return list(history[-limit:])

    def record_message(self, conversation_key: str, message: MessageEntry) -> bool:
        self.messages.setdefault(conversation_key, []).append(message)
        return True

    def register_user(self, conversation_key: str, profile: UserProfile) -> bool:
        self.users[conversation_key] = replace(profile, is_registered=True)
        return True


class DisabledProfileStore(ProfileStore):
    """
    Durable store disabled.

    Used to verify the memory store still produces records when the
    durable side is unreachable. Every operation fails.
    """

    def find_user_profile(self, conversation_key: str) -> Optional[UserProfile]:
        raise ConnectionError("Profile store is disabled")

    def get_recent_messages(self, conversation_key: str, limit: int) -> List[MessageEntry]:
        raise ConnectionError("Profile store is disabled")

    def record_message(self, conversation_key: str, message: MessageEntry) -> bool:
        return False

    def register_user(self, conversation_key: str, profile: UserProfile) -> bool:
        return False
