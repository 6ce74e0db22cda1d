"""
Contextual intent / entity reconciler.

Post-processes raw LLM detections against the catalog and the current
conversational context:

- expand_intents: add intents from literal detection patterns and relation
  rules (add-only, followed to closure, idempotent)
- infer_entities: copy remembered values forward when the message refers
  back to them; fresh values always win
- detect_context_change / topic_change_confidence: decide whether the
  message moves the conversation to a new topic, and how sure we are
- primary_intent / analyze_coherence: context-aware intent ranking and
  topic continuity diagnostics

All functions are pure; none touches the memory store.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from agent.memory.topics import INTENT_PRIORITY, classify, intents_for_topic
from agent.memory.types import ContextView, Intent, Topic
from agent.nlp.catalog import InferenceTrigger, NLPCatalog

logger = logging.getLogger(__name__)

TRANSITION_THRESHOLD = 0.7

STRONG_INTENTS = frozenset({
    Intent.SOLICITUD_PRUEBA.value,
    Intent.SOPORTE_TECNICO.value,
    Intent.QUEJA.value,
    Intent.CANCELACION.value,
})

_PRIORITY_RANK = {intent.value: rank for rank, intent in enumerate(INTENT_PRIORITY)}


# ============================================================================
# INTENT EXPANSION
# ============================================================================

def expand_intents(message: str, intents: Sequence[str], catalog: NLPCatalog) -> List[str]:
    """
    Add intents implied by the message and by relation rules.

    1. Every catalog intent with a detection pattern that is a substring of
       the lowercased message is added.
    2. For every intent present, its relation rules are applied:
       "always" adds the related intent; "contains" adds it when one of the
       rule keywords is a substring of the lowercased message.

    Relations are followed until nothing new is added. The input order is
    preserved and additions are appended. Never removes an intent.
    """
    result = list(dict.fromkeys(intents or []))
    if not message:
        return result

    text = message.lower().strip()

    for name, definition in catalog.intents.items():
        if name in result:
            continue
        if any(pattern.lower() in text for pattern in definition.detection_patterns if pattern):
            logger.debug(f"Intent '{name}' added by detection pattern")
            result.append(name)

    # Worklist over the growing result list
    index = 0
    while index < len(result):
        definition = catalog.intents.get(result[index])
        index += 1
        if definition is None:
            continue
        for relation in definition.related:
            if relation.intent in result:
                continue
            if relation.condition == "always" or (
                relation.condition == "contains"
                and any(keyword.lower() in text for keyword in relation.keywords if keyword)
            ):
                logger.debug(f"Intent '{relation.intent}' added by relation ({relation.condition})")
                result.append(relation.intent)

    return result


# ============================================================================
# ENTITY INFERENCE
# ============================================================================

def should_infer_entity(
    message: str,
    entity_type: str,
    triggers: Dict[str, InferenceTrigger],
    trigger_phrases: Dict[str, List[str]],
    default_rule: Optional[InferenceTrigger] = None,
) -> bool:
    """
    Decide whether the message refers back to a remembered entity.

    Entity types without a rule of their own fall back to default_rule;
    with neither, the type is never inferred.
    """
    rule = triggers.get(entity_type) or default_rule
    if rule is None or not message:
        return False

    text = message.lower()

    for category in rule.categories:
        if any(phrase in text for phrase in trigger_phrases.get(category, [])):
            return True
    return any(keyword.lower() in text for keyword in rule.keywords)


def infer_entities(
    extracted: Dict[str, str],
    context: ContextView,
    message: str,
    catalog: NLPCatalog,
) -> Dict[str, str]:
    """
    Enrich freshly extracted entities with remembered ones.

    A known value is copied only when its type is missing from the fresh
    extraction and should_infer_entity() agrees.
    """
    enriched = dict(extracted or {})

    for entity_type, known_value in context.known_entities.items():
        if enriched.get(entity_type) or not known_value:
            continue
        if should_infer_entity(
            message,
            entity_type,
            catalog.inference_triggers,
            catalog.trigger_phrases,
            catalog.default_inference_trigger,
        ):
            enriched[entity_type] = known_value
            logger.debug(f"Entity '{entity_type}' inferred from context")

    return enriched


# ============================================================================
# CONTEXT CHANGE
# ============================================================================

@dataclass
class ContextChange:
    """Outcome of topic-shift detection for one message."""

    has_changed: bool = False
    previous_topic: Optional[Topic] = None
    suggested_topic: Optional[Topic] = None
    confidence: float = 0.0
    reason: Optional[str] = None

    @property
    def is_transition(self) -> bool:
        """True when the change is confident enough to narrate."""
        return self.has_changed and self.confidence > TRANSITION_THRESHOLD


def topic_change_confidence(
    intents: Sequence[str],
    context_strength: float,
    supported_intents: Sequence[str] = (),
) -> float:
    """
    Confidence that the intents really start a new topic.

    0.5 base; +0.3 with a strong intent; -0.2 when the current topic is
    well established (strength > 0.7); +0.2 when more than one detected
    intent belongs to the new topic. Clamped to [0, 1].

    >>> topic_change_confidence(["solicitud_prueba"], 0.9)
    0.6
    """
    confidence = 0.5

    if any(intent in STRONG_INTENTS for intent in intents):
        confidence += 0.3

    if context_strength > 0.7:
        confidence -= 0.2

    new_topic = classify(intents)
    related = intents_for_topic(new_topic, supported_intents)
    if sum(1 for intent in intents if intent in related) > 1:
        confidence += 0.2

    return round(min(max(confidence, 0.0), 1.0), 6)


def detect_context_change(
    intents: Sequence[str],
    context: ContextView,
    supported_intents: Sequence[str] = (),
) -> ContextChange:
    """Compare the topic implied by the intents with the current topic."""
    change = ContextChange(previous_topic=context.current_topic)

    if not intents:
        return change

    new_topic = classify(intents)
    current = context.current_topic

    if current is not None and current != new_topic:
        change.has_changed = True
        change.suggested_topic = new_topic
        change.confidence = topic_change_confidence(intents, context.context_strength, supported_intents)
        change.reason = f"Topic change from {current.value} to {new_topic.value}"
        logger.info(f"Context change detected: {change.reason} (confidence: {change.confidence})")
    elif current is None and new_topic != Topic.GENERAL:
        change.has_changed = True
        change.suggested_topic = new_topic
        change.confidence = 0.8
        change.reason = f"New topic established: {new_topic.value}"

    return change


# ============================================================================
# CONTEXT-AWARE RANKING
# ============================================================================

def primary_intent(
    intents: Sequence[str],
    context: ContextView,
    supported_intents: Sequence[str] = (),
) -> Optional[str]:
    """
    Pick the intent that drives the reply.

    An intent related to the current topic wins; otherwise the highest
    priority one. Intents outside the priority table rank last.
    """
    if not intents:
        return None

    if context.current_topic is not None:
        related = intents_for_topic(context.current_topic, supported_intents)
        for intent in intents:
            if intent in related:
                return intent

    return min(intents, key=lambda intent: _PRIORITY_RANK.get(intent, len(_PRIORITY_RANK)))


@dataclass
class CoherenceAnalysis:
    is_coherent: bool = True
    coherence_score: float = 1.0
    topic_continuity: bool = True
    contextual_clues: List[str] = field(default_factory=list)


def analyze_coherence(
    intents: Sequence[str],
    context: ContextView,
    supported_intents: Sequence[str] = (),
) -> CoherenceAnalysis:
    """Check whether the message continues the current conversation."""
    analysis = CoherenceAnalysis()

    if context.current_topic is not None and intents:
        related = intents_for_topic(context.current_topic, supported_intents)
        if not any(intent in related for intent in intents):
            analysis.topic_continuity = False
            analysis.coherence_score -= 0.3
            analysis.contextual_clues.append("topic_change")

    recent = context.recent_intents[:3]
    if recent and any(intent in recent for intent in intents):
        analysis.contextual_clues.append("repeated_intent")

    analysis.is_coherent = analysis.coherence_score > 0.5
    return analysis
