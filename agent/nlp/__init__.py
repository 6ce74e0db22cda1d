"""
NLP layer: intent/entity catalog, LLM output parsing and contextual
reconciliation of detections.
"""

from agent.nlp.catalog import (
    CatalogError,
    EntityDefinition,
    InferenceTrigger,
    IntentDefinition,
    IntentRelation,
    NLPCatalog,
    ServiceMetadata,
    load_catalog,
)
from agent.nlp.parsing import extract_json_object, parse_entity_response, parse_intent_response
from agent.nlp.reconciler import (
    STRONG_INTENTS,
    TRANSITION_THRESHOLD,
    CoherenceAnalysis,
    ContextChange,
    analyze_coherence,
    detect_context_change,
    expand_intents,
    infer_entities,
    primary_intent,
    should_infer_entity,
    topic_change_confidence,
)

__all__ = [
    "CatalogError",
    "EntityDefinition",
    "InferenceTrigger",
    "IntentDefinition",
    "IntentRelation",
    "NLPCatalog",
    "ServiceMetadata",
    "load_catalog",
    "extract_json_object",
    "parse_entity_response",
    "parse_intent_response",
    "STRONG_INTENTS",
    "TRANSITION_THRESHOLD",
    "CoherenceAnalysis",
    "ContextChange",
    "analyze_coherence",
    "detect_context_change",
    "expand_intents",
    "infer_entities",
    "primary_intent",
    "should_infer_entity",
    "topic_change_confidence",
]
