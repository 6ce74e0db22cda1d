"""
Conversational memory store.

Single in-process map of ConversationKey → MemoryRecord, with lazy
initialization from the durable ProfileStore, time-boxed expiry and
best-effort updates.

Key properties:
- get() always produces some record (never raises)
- update() applies the delta to a working copy; the live record is only
  replaced when the whole delta applied cleanly
- Volatile by design: nothing here survives a restart
- Clock and durable store are injected
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from agent.memory.base import ProfileStore
from agent.memory.record import MemoryRecord
from agent.memory.topics import TopicTracker
from agent.memory.types import (
    IntentEntry,
    MemoryConfig,
    MemoryDelta,
    MemoryResult,
    UserProfile,
    utcnow,
)

logger = logging.getLogger(__name__)

# Placeholder profile written on first contact; never seeded as entities
PLACEHOLDER_NAME = "Usuario"
PLACEHOLDER_EMAIL_DOMAIN = "@temp.com"


class ConversationMemoryStore:
    """In-process conversational memory, one record per end user."""

    def __init__(
        self,
        profile_store: Optional[ProfileStore] = None,
        config: Optional[MemoryConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            profile_store: Durable user/history lookup (None disables seeding)
            config: Memory limits and windows
            clock: Time source
        """
        self.profile_store = profile_store
        self.config = config or MemoryConfig()
        self._clock = clock
        self._records: Dict[str, MemoryRecord] = {}
        self._topics = TopicTracker(self.config.max_topic_history, clock)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def now(self) -> datetime:
        """Current time on the store's clock."""
        return self._clock()

    @property
    def expiration_window(self) -> timedelta:
        return timedelta(hours=self.config.expiration_hours)

    def is_expired(self, record: MemoryRecord) -> bool:
        return self._clock() - record.last_update > self.expiration_window

    def get(self, key: str) -> MemoryRecord:
        """
        Return the live record for a key.

        Lazily initialized on first reference and re-initialized wholesale
        once the expiration window has passed since the last update.
        """
        record = self._records.get(key)

        if record is not None and self.is_expired(record):
            logger.info(f"Conversation memory for {key} expired, reinitializing")
            record = None

        if record is None:
            record = self.initialize(key).value
            self._records[key] = record

        return record

    def initialize(self, key: str) -> MemoryResult[MemoryRecord]:
        """
        Build a fresh record seeded from the durable store.

        Returns:
            ok: record seeded (or legitimately empty for an unknown user)
            empty: durable lookup failed, empty unregistered record
        """
        record = MemoryRecord.empty(key, self.config, self._clock)
        if self.profile_store is None:
            return MemoryResult(status="ok", value=record)

        try:
            profile = self.profile_store.find_user_profile(key)
        except Exception as e:
            logger.error(f"Failed to load profile for {key}: {str(e)}")
            return MemoryResult(status="empty", value=record, error=f"Profile lookup failed: {str(e)}")

        if profile is None:
            logger.info(f"Conversation memory initialized for unregistered {key}")
            return MemoryResult(status="ok", value=record)

        record.user_profile = profile
        self._seed_entities(record, profile)

        try:
            history = self.profile_store.get_recent_messages(key, self.config.max_history_length)
            record.message_history = list(history)[-self.config.max_history_length:]
        except Exception as e:
            logger.warning(f"Could not load history for {key}: {str(e)}")

        logger.info(f"Conversation memory initialized for {key}")
        return MemoryResult(status="ok", value=record)

    def _seed_entities(self, record: MemoryRecord, profile: UserProfile) -> None:
        store = record.known_entities
        first_seen = profile.registration_date
        last_seen = profile.last_activity

        if profile.name and profile.name != PLACEHOLDER_NAME:
            store.seed("nombre", profile.name, first_seen, last_seen)
        if profile.email and PLACEHOLDER_EMAIL_DOMAIN not in profile.email:
            store.seed("email", profile.email, first_seen, last_seen)
        if profile.company:
            store.seed("empresa", profile.company, first_seen, last_seen)
        if profile.position:
            store.seed("cargo", profile.position, first_seen, last_seen)

    def update(self, key: str, delta: MemoryDelta) -> MemoryResult[MemoryRecord]:
        """
        Merge a delta into a record.

        - user_info: shallow merge into the profile
        - entities: through the entity confidence store, then prune
        - intents: prepended to intent history (bounded)
        - topic: through the topic tracker
        - message: appended to message history (bounded)

        Returns:
            ok: the updated live record
            empty: the pre-update record, unchanged, with the error
        """
        current = self.get(key)

        try:
            working = copy.deepcopy(current)
            self._apply(working, delta)
        except Exception as e:
            logger.error(f"Failed to update conversation memory for {key}: {str(e)}")
            return MemoryResult(status="empty", value=current, error=f"Update failed: {str(e)}")

        self._records[key] = working
        logger.debug(f"Conversation memory updated for {key}")
        return MemoryResult(status="ok", value=working)

    def _apply(self, record: MemoryRecord, delta: MemoryDelta) -> None:
        now = self._clock()
        limit = self.config.max_history_length

        if delta.user_info:
            record.user_profile.merge(delta.user_info)

        if delta.entities:
            for entity_type, value in delta.entities.items():
                record.known_entities.upsert(entity_type, value)
            record.known_entities.prune(
                self.config.entity_max_age_days,
                self.config.entity_min_confidence,
            )

        if delta.intents:
            for intent in delta.intents:
                record.intent_history.insert(0, IntentEntry(intent=intent, timestamp=now))
            del record.intent_history[limit:]

        if delta.topic is not None:
            self._topics.record_transition(record, delta.topic)

        if delta.message is not None:
            record.message_history.append(delta.message)
            del record.message_history[:-limit]

        record.last_update = now

    def clear(self, key: str) -> bool:
        """Drop a record entirely (logout / reset)."""
        removed = self._records.pop(key, None) is not None
        logger.info(f"Conversation memory cleared for {key}")
        return removed

    def sweep_expired(self) -> int:
        """
        Delete every expired record; prune entities of the survivors.

        Returns:
            Number of records removed
        """
        expired = [key for key, record in list(self._records.items()) if self.is_expired(record)]
        for key in expired:
            self._records.pop(key, None)

        for record in list(self._records.values()):
            record.known_entities.prune(
                self.config.entity_max_age_days,
                self.config.entity_min_confidence,
            )

        if expired:
            logger.info(f"Memory sweep: {len(expired)} expired conversations removed")
        return len(expired)

    def keys(self) -> List[str]:
        return list(self._records)

    def stats(self) -> Dict[str, Any]:
        return {
            "total_users": len(self._records),
            "memory_config": vars(self.config).copy(),
            "timestamp": self._clock().isoformat(),
        }
