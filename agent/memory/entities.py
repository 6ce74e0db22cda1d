"""
Entity confidence store.

Holds the typed facts remembered for one conversation (nombre, email,
empresa, ...) together with a confidence score, an occurrence count and
first/last-seen timestamps.

Rules:
- first sighting → full confidence (scaled by the caller's initial confidence)
- same value again → confidence +0.2 (cap 1.0), occurrences +1
- different value, few occurrences → replaced (confidence 0.8)
- different value, established fact → kept, confidence -0.1 (floor 0.3)
- low confidence AND stale → pruned
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, Optional, Tuple

from agent.memory.types import KnownEntity, utcnow

logger = logging.getLogger(__name__)

CONFIDENCE_INCREMENT = 0.2
CONFIDENCE_DECAY = 0.1
CONFIDENCE_FLOOR = 0.3
REPLACEMENT_CONFIDENCE = 0.8


class EntityConfidenceStore:
    """Per-conversation map of entity type → KnownEntity."""

    def __init__(
        self,
        persistence_threshold: int = 2,
        max_entities: int = 20,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            persistence_threshold: Occurrences after which a conflicting value
                                   decays the stored fact instead of replacing it
            max_entities: Capacity; least recently seen entries are evicted
            clock: Time source
        """
        self.persistence_threshold = persistence_threshold
        self.max_entities = max_entities
        self._clock = clock
        self._entities: Dict[str, KnownEntity] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_type: str) -> bool:
        return entity_type in self._entities

    def __iter__(self) -> Iterator[Tuple[str, KnownEntity]]:
        return iter(self._entities.items())

    def __deepcopy__(self, memo) -> "EntityConfidenceStore":
        # The clock is shared; only the entries are copied
        clone = EntityConfidenceStore(self.persistence_threshold, self.max_entities, self._clock)
        clone._entities = copy.deepcopy(self._entities, memo)
        return clone

    def get(self, entity_type: str) -> Optional[KnownEntity]:
        return self._entities.get(entity_type)

    def upsert(self, entity_type: str, value: str, initial_confidence: float = 1.0) -> Optional[KnownEntity]:
        """
        Record one sighting of an entity value.

        Returns:
            The stored entity after the update, or None when value is blank.
        """
        if value is None or not str(value).strip():
            return None

        value = str(value).strip()
        now = self._clock()
        existing = self._entities.get(entity_type)

        if existing is None:
            entity = KnownEntity(
                value=value,
                confidence=min(max(initial_confidence, 0.0), 1.0),
                first_seen=now,
                last_seen=now,
                occurrences=1,
            )
            self._entities[entity_type] = entity
            self._enforce_capacity()
            return entity

        if existing.value == value:
            existing.confidence = min(existing.confidence + CONFIDENCE_INCREMENT, 1.0)
            existing.occurrences += 1
            existing.last_seen = now
            return existing

        if existing.occurrences < self.persistence_threshold:
            logger.debug(f"Entity '{entity_type}' replaced: {existing.value!r} -> {value!r}")
            entity = KnownEntity(
                value=value,
                confidence=REPLACEMENT_CONFIDENCE,
                first_seen=now,
                last_seen=now,
                occurrences=1,
            )
            self._entities[entity_type] = entity
            return entity

        # Established fact resists a single conflicting utterance
        existing.confidence = max(existing.confidence - CONFIDENCE_DECAY, CONFIDENCE_FLOOR)
        logger.debug(
            f"Entity '{entity_type}' kept as {existing.value!r} "
            f"(conflict {value!r}, confidence {existing.confidence:.2f})"
        )
        return existing

    def seed(
        self,
        entity_type: str,
        value: str,
        first_seen: Optional[datetime] = None,
        last_seen: Optional[datetime] = None,
    ) -> None:
        """Insert a fact taken from the durable user profile."""
        if not value:
            return
        now = self._clock()
        self._entities[entity_type] = KnownEntity(
            value=value,
            confidence=1.0,
            first_seen=first_seen or now,
            last_seen=last_seen or now,
            occurrences=1,
        )
        self._enforce_capacity()

    def prune(self, max_age_days: float = 7, min_confidence: float = CONFIDENCE_FLOOR) -> int:
        """
        Delete entities that are both low-confidence and stale.

        Returns:
            Number of deleted entities
        """
        cutoff = self._clock() - timedelta(days=max_age_days)
        stale = [
            entity_type
            for entity_type, entity in self._entities.items()
            if entity.confidence < min_confidence and entity.last_seen < cutoff
        ]
        for entity_type in stale:
            del self._entities[entity_type]
        if stale:
            logger.debug(f"Pruned entities: {stale}")
        return len(stale)

    def flatten(self) -> Dict[str, str]:
        """Plain type → value map for prompt construction."""
        return {entity_type: entity.value for entity_type, entity in self._entities.items()}

    def _enforce_capacity(self) -> None:
        while len(self._entities) > self.max_entities:
            oldest = min(self._entities, key=lambda k: self._entities[k].last_seen)
            del self._entities[oldest]
