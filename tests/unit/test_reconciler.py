"""
Contextual intent / entity reconciler tests.

Validates:
1. Intent expansion: patterns, relations, closure, idempotency, add-only
2. Entity inference: per-type rules, the default rule, trigger evidence,
   fresh values always win
3. Topic-change confidence and detection
4. Context-aware primary intent and coherence analysis
"""

import pytest

from agent.memory import ContextView, Topic
from agent.nlp import (
    NLPCatalog,
    analyze_coherence,
    detect_context_change,
    expand_intents,
    infer_entities,
    primary_intent,
    should_infer_entity,
    topic_change_confidence,
)


def _context(**kwargs):
    return ContextView(**kwargs)


class TestExpandIntents:
    """Detection patterns and relation rules."""

    def test_detection_pattern_adds_intent(self, catalog):
        assert "saludo" in expand_intents("Hola, buenas", [], catalog)

    def test_relation_always(self, catalog):
        result = expand_intents("lo quiero", ["solicitud_prueba"], catalog)
        assert result == ["solicitud_prueba", "interes_en_servicio"]

    def test_relation_contains_requires_keyword(self, catalog):
        assert "queja" not in expand_intents("tengo un problema", ["soporte_tecnico"], catalog)
        assert "queja" in expand_intents("otra vez tengo un problema", ["soporte_tecnico"], catalog)

    def test_pattern_then_relation_closure(self, catalog):
        result = expand_intents("Necesito ayuda para crear un reporte", [], catalog)
        assert "guia_reportes" in result
        assert "tutorial_general" in result

    def test_relations_followed_transitively(self):
        catalog = NLPCatalog(intents={
            "a": {"related": [{"intent": "b"}]},
            "b": {"related": [{"intent": "c"}]},
            "c": {"related": [{"intent": "a"}]},
        })
        assert expand_intents("x", ["a"], catalog) == ["a", "b", "c"]

    def test_idempotent(self, catalog):
        message = "Hola, quiero una cuenta de prueba, ¿cuánto cuesta?"
        once = expand_intents(message, ["confirmacion"], catalog)
        twice = expand_intents(message, once, catalog)

        assert once == twice
        assert once[0] == "confirmacion"

    def test_never_removes_and_dedupes(self, catalog):
        result = expand_intents("", ["queja", "queja", "desconocida"], catalog)
        assert result == ["queja", "desconocida"]


class TestEntityInference:
    """Copying remembered entities forward."""

    def test_default_rule_carries_untyped_entities(self, catalog):
        context = _context(known_entities={"telefono": "5551234567", "usuario": "jperez"})
        result = infer_entities({}, context, "sí, continuar", catalog)
        assert result == {"telefono": "5551234567", "usuario": "jperez"}

    def test_default_rule_needs_continuity_or_action(self, catalog):
        context = _context(known_entities={"telefono": "5551234567"})
        # Self-reference alone is not enough without a type-specific rule
        assert infer_entities({}, context, "mi número de casa", catalog) == {}

    def test_no_rule_and_no_default_never_inferred(self, catalog):
        assert not should_infer_entity("sí, continuar", "telefono", {}, catalog.trigger_phrases)

    def test_self_reference_triggers_nombre(self, catalog):
        context = _context(known_entities={"nombre": "Ana"})
        assert infer_entities({}, context, "quiero una prueba", catalog) == {"nombre": "Ana"}

    def test_no_evidence_no_inference(self, catalog):
        context = _context(known_entities={"nombre": "Ana"})
        assert infer_entities({}, context, "buenas tardes", catalog) == {}

    def test_keyword_trigger(self, catalog):
        context = _context(known_entities={"empresa": "Acme"})
        assert infer_entities({}, context, "la compañía crece", catalog) == {"empresa": "Acme"}

    def test_fresh_value_beats_inferred(self, catalog):
        context = _context(known_entities={"nombre": "Ana", "email": "ana@acme.com"})
        result = infer_entities({"nombre": "Luis"}, context, "mi nombre es Luis", catalog)

        assert result == {"nombre": "Luis", "email": "ana@acme.com"}

    def test_should_infer_entity_uses_own_rule_first(self, catalog):
        assert not should_infer_entity("mi clave", "clave", catalog.inference_triggers, catalog.trigger_phrases)
        assert should_infer_entity("mi correo", "email", catalog.inference_triggers, catalog.trigger_phrases)


class TestTopicChange:
    """Confidence scoring and change detection."""

    def test_strong_intent_against_established_topic(self):
        # 0.5 + 0.3 (strong) - 0.2 (established) = 0.6, below the threshold
        assert topic_change_confidence(["solicitud_prueba"], 0.9) == pytest.approx(0.6)

    def test_multiple_related_intents_bonus(self, catalog):
        confidence = topic_change_confidence(
            ["solicitud_prueba", "interes_en_servicio"], 0.2, catalog.supported_intents
        )
        assert confidence == 1.0

    @pytest.mark.parametrize("intents", [[], ["saludo"], ["queja", "soporte_tecnico"], ["x", "y", "z"]])
    def test_bounded_and_non_increasing_in_strength(self, intents):
        values = [topic_change_confidence(intents, s / 10) for s in range(11)]
        assert all(0.0 <= v <= 1.0 for v in values)
        assert values == sorted(values, reverse=True)

    def test_established_topic_change_not_a_transition(self, catalog):
        context = _context(current_topic=Topic.TECHNICAL_SUPPORT, context_strength=0.9)
        change = detect_context_change(["solicitud_prueba"], context, catalog.supported_intents)

        assert change.has_changed
        assert change.previous_topic == Topic.TECHNICAL_SUPPORT
        assert change.suggested_topic == Topic.TRIAL_REQUEST
        assert change.confidence == pytest.approx(0.6)
        assert not change.is_transition

    def test_weak_topic_change_is_a_transition(self, catalog):
        context = _context(current_topic=Topic.GREETING, context_strength=0.5)
        change = detect_context_change(["solicitud_prueba"], context, catalog.supported_intents)

        assert change.confidence == pytest.approx(0.8)
        assert change.is_transition

    def test_same_topic_no_change(self, catalog):
        context = _context(current_topic=Topic.PRICING_INQUIRY, context_strength=1.0)
        change = detect_context_change(["consulta_precio"], context, catalog.supported_intents)
        assert not change.has_changed
        assert change.confidence == 0.0

    def test_first_topic_established(self, catalog):
        change = detect_context_change(["consulta_precio"], _context(), catalog.supported_intents)
        assert change.has_changed
        assert change.previous_topic is None
        assert change.suggested_topic == Topic.PRICING_INQUIRY

    def test_no_intents_no_change(self, catalog):
        context = _context(current_topic=Topic.GREETING, context_strength=1.0)
        assert not detect_context_change([], context).has_changed


class TestRanking:
    """Primary intent and coherence."""

    def test_related_intent_wins_in_context(self, catalog):
        context = _context(current_topic=Topic.TRIAL_REQUEST)
        assert primary_intent(["saludo", "confirmacion"], context, catalog.supported_intents) == "confirmacion"

    def test_priority_without_context(self, catalog):
        assert primary_intent(["saludo", "consulta_precio"], _context()) == "consulta_precio"

    def test_unprioritized_rank_last(self):
        assert primary_intent(["guia_reportes", "saludo"], _context()) == "saludo"
        assert primary_intent([], _context()) is None

    def test_topic_break_lowers_coherence(self, catalog):
        context = _context(current_topic=Topic.PRICING_INQUIRY, recent_intents=["consulta_precio"])
        analysis = analyze_coherence(["soporte_tecnico"], context, catalog.supported_intents)

        assert analysis.topic_continuity is False
        assert analysis.coherence_score == pytest.approx(0.7)
        assert analysis.is_coherent
        assert analysis.contextual_clues == ["topic_change"]

    def test_repeated_intent_clue(self, catalog):
        context = _context(current_topic=Topic.PRICING_INQUIRY, recent_intents=["consulta_precio"])
        analysis = analyze_coherence(["consulta_precio"], context, catalog.supported_intents)

        assert analysis.topic_continuity
        assert analysis.contextual_clues == ["repeated_intent"]
