"""
Topic tracker.

Derives the conversation topic from detected intents using a fixed
priority order, and records topic transitions on a memory record.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence

from agent.memory.types import Intent, Topic, TopicEntry, utcnow

if TYPE_CHECKING:
    from agent.memory.record import MemoryRecord

logger = logging.getLogger(__name__)

# First match wins
INTENT_PRIORITY: List[Intent] = [
    Intent.SOLICITUD_PRUEBA,
    Intent.SOPORTE_TECNICO,
    Intent.QUEJA,
    Intent.CANCELACION,
    Intent.CONSULTA_PRECIO,
    Intent.CONSULTA_CARACTERISTICAS,
    Intent.INTERES_EN_SERVICIO,
    Intent.CONFIRMACION,
    Intent.AGRADECIMIENTO,
    Intent.SALUDO,
    Intent.DESPEDIDA,
]

INTENT_TOPICS: Dict[Intent, Topic] = {
    Intent.SOLICITUD_PRUEBA: Topic.TRIAL_REQUEST,
    Intent.SOPORTE_TECNICO: Topic.TECHNICAL_SUPPORT,
    Intent.QUEJA: Topic.COMPLAINT,
    Intent.CANCELACION: Topic.CANCELLATION,
    Intent.CONSULTA_PRECIO: Topic.PRICING_INQUIRY,
    Intent.CONSULTA_CARACTERISTICAS: Topic.FEATURES_INQUIRY,
    Intent.INTERES_EN_SERVICIO: Topic.SERVICE_INTEREST,
    Intent.CONFIRMACION: Topic.CONFIRMATION,
    Intent.AGRADECIMIENTO: Topic.GRATITUDE,
    Intent.SALUDO: Topic.GREETING,
    Intent.DESPEDIDA: Topic.FAREWELL,
}

# Intents that keep a topic alive. GENERAL resolves to the whole catalog.
TOPIC_INTENTS: Dict[Topic, List[Intent]] = {
    Topic.TRIAL_REQUEST: [Intent.SOLICITUD_PRUEBA, Intent.CONFIRMACION, Intent.INTERES_EN_SERVICIO],
    Topic.TECHNICAL_SUPPORT: [Intent.SOPORTE_TECNICO, Intent.QUEJA],
    Topic.PRICING_INQUIRY: [Intent.CONSULTA_PRECIO, Intent.INTERES_EN_SERVICIO],
    Topic.FEATURES_INQUIRY: [Intent.CONSULTA_CARACTERISTICAS, Intent.INTERES_EN_SERVICIO],
    Topic.COMPLAINT: [Intent.QUEJA, Intent.SOPORTE_TECNICO, Intent.CANCELACION],
    Topic.CANCELLATION: [Intent.CANCELACION, Intent.QUEJA],
    Topic.SERVICE_INTEREST: [Intent.INTERES_EN_SERVICIO, Intent.CONSULTA_CARACTERISTICAS, Intent.CONSULTA_PRECIO],
    Topic.GREETING: [Intent.SALUDO, Intent.INTERES_EN_SERVICIO],
    Topic.FAREWELL: [Intent.DESPEDIDA, Intent.AGRADECIMIENTO],
    Topic.GRATITUDE: [Intent.AGRADECIMIENTO, Intent.DESPEDIDA],
    Topic.CONFIRMATION: [Intent.CONFIRMACION],
}

CONTEXT_STRENGTH_INCREMENT = 0.1


def classify(intents: Optional[Iterable[str]]) -> Topic:
    """
    Map detected intents to a topic.

    The input order is irrelevant; INTENT_PRIORITY decides.

    >>> classify(["saludo", "solicitud_prueba"])
    <Topic.TRIAL_REQUEST: 'trial_request'>
    """
    detected = set(intents or [])
    if not detected:
        return Topic.GENERAL

    for intent in INTENT_PRIORITY:
        if intent.value in detected:
            return INTENT_TOPICS.get(intent, Topic.GENERAL)
    return Topic.GENERAL


def intents_for_topic(topic: Topic, supported_intents: Sequence[str] = ()) -> List[str]:
    """Intent names related to a topic; GENERAL means every supported intent."""
    related = TOPIC_INTENTS.get(topic)
    if related is None:
        return list(supported_intents)
    return [intent.value for intent in related]


class TopicTracker:
    """Records topic transitions on memory records."""

    def __init__(self, max_topic_history: int = 5, clock: Callable[[], datetime] = utcnow):
        self.max_topic_history = max_topic_history
        self._clock = clock

    def classify(self, intents: Optional[Iterable[str]]) -> Topic:
        return classify(intents)

    def record_transition(self, record: "MemoryRecord", new_topic: Topic) -> bool:
        """
        Apply a topic observation to a record.

        On change the current topic is archived (most-recent-first, bounded)
        and context strength resets to 1.0; otherwise strength grows by 0.1.

        Returns:
            True if the topic changed
        """
        state = record.conversation_state
        now = self._clock()

        if state.current_topic == new_topic:
            state.context_strength = min(state.context_strength + CONTEXT_STRENGTH_INCREMENT, 1.0)
            return False

        if state.current_topic is not None:
            start = state.topic_start_time
            duration = (now - start).total_seconds() if start else 0.0
            record.topic_history.insert(
                0,
                TopicEntry(
                    topic=state.current_topic,
                    start_time=start,
                    end_time=now,
                    duration=duration,
                ),
            )
            del record.topic_history[self.max_topic_history:]
            logger.info(
                f"Topic change for {record.key}: {state.current_topic.value} -> {new_topic.value}"
            )

        state.current_topic = new_topic
        state.topic_start_time = now
        state.context_strength = 1.0
        return True
