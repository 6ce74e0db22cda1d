"""
tests/prompting/test_prompt_builder.py

Unit tests for the PromptBuilder layer.

Verifies:
✔ SYSTEM_PROMPT is a non-empty Spanish behavioral contract
✔ intent / entity prompts render the context and the catalog
✔ the user message is never truncated and is sent as the user turn
✔ recent messages are trimmed to _MAX_HISTORY_CHARS, oldest first
✔ response prompt embeds detections, topic and recent conversation
✔ templates_dir overrides built-in templates
"""

from datetime import datetime, timezone

import pytest

from agent.memory import ContextView, MessageEntry, Topic, UserProfile
from agent.prompting import (
    BUILTIN_TEMPLATES,
    SYSTEM_PROMPT,
    available_templates,
    build_entity_prompt,
    build_intent_prompt,
    build_response_prompt,
    load_template,
    trim_history,
)
from agent.prompting.prompt_builder import _MAX_HISTORY_CHARS, _MAX_HISTORY_TURNS
from agent.prompting.templates import ENTITY_EXTRACTION, INTENT_DETECTION, USER_RESPONSE

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _msg(text, from_user=True):
    return MessageEntry(content=text, is_from_user=from_user, timestamp=T0)


@pytest.fixture
def registered_context():
    return ContextView(
        user_profile=UserProfile(is_registered=True, name="Ana López", email="ana@acme.com", company="Acme"),
        known_entities={"nombre": "Ana López", "empresa": "Acme"},
        recent_messages=[_msg("Hola"), _msg("¡Hola Ana! ¿En qué te ayudo?", from_user=False)],
        recent_intents=["saludo"],
        current_topic=Topic.GREETING,
        topic_history=["pricing_inquiry"],
        context_strength=1.0,
    )


class TestSystemPrompt:
    """Tests for the SYSTEM_PROMPT behavioral contract."""

    def test_system_prompt_is_nonempty_string(self):
        assert isinstance(SYSTEM_PROMPT, str)
        assert len(SYSTEM_PROMPT) > 0

    def test_system_prompt_rules(self):
        assert "español" in SYSTEM_PROMPT
        assert "conciso" in SYSTEM_PROMPT
        assert "No inventes" in SYSTEM_PROMPT


class TestTrimHistory:

    def test_keeps_newest_within_budget(self):
        messages = [_msg("a" * 600), _msg("b" * 600), _msg("c" * 600)]
        kept = trim_history(messages)

        assert [m.content[0] for m in kept] == ["b", "c"]
        assert sum(len(m.content) for m in kept) <= _MAX_HISTORY_CHARS

    def test_oversized_newest_drops_everything(self):
        assert trim_history([_msg("x"), _msg("y" * (_MAX_HISTORY_CHARS + 1))]) == []

    def test_empty(self):
        assert trim_history([]) == []


class TestIntentPrompt:

    def test_renders_context_and_catalog(self, registered_context, catalog):
        prompt = build_intent_prompt("quiero una prueba", registered_context, catalog)

        assert "Usuario registrado: Ana López (ana@acme.com)" in prompt.system
        assert "Empresa: Acme" in prompt.system
        assert "- empresa: Acme" in prompt.system
        assert "Tema actual de conversación: greeting" in prompt.system
        assert 'Intenciones recientes: ["saludo"]' in prompt.system
        assert "- solicitud_prueba" in prompt.system
        assert '- "Quiero probar el sistema"' in prompt.system
        assert '{"intents": ["intencion1", "intencion2"]}' in prompt.system
        assert "{{" not in prompt.system

    def test_user_turn_and_history(self, registered_context, catalog):
        prompt = build_intent_prompt("quiero una prueba", registered_context, catalog)

        assert prompt.user == "quiero una prueba"
        assert prompt.history == [
            {"role": "user", "content": "Hola"},
            {"role": "assistant", "content": "¡Hola Ana! ¿En qué te ayudo?"},
        ]

    def test_unregistered_empty_context(self, catalog):
        prompt = build_intent_prompt("Hola", ContextView.empty(), catalog)

        assert "Usuario no registrado" in prompt.system
        assert "Tema actual" not in prompt.system
        assert "Información conocida" not in prompt.system
        assert prompt.history == []

    def test_history_turns_capped(self, catalog):
        context = ContextView(recent_messages=[_msg(f"m{i}") for i in range(10)])
        prompt = build_intent_prompt("x", context, catalog)
        assert len(prompt.history) == _MAX_HISTORY_TURNS
        assert prompt.history[-1]["content"] == "m9"

    def test_long_message_not_truncated(self, catalog):
        message = "precio " * 1000
        assert build_intent_prompt(message, ContextView.empty(), catalog).user == message


class TestEntityPrompt:

    def test_renders_entities(self, registered_context, catalog):
        prompt = build_entity_prompt("mi correo es ana@acme.com", registered_context, catalog)

        assert "ENTIDADES A BUSCAR" in prompt.system
        assert "- monto" in prompt.system
        assert "- nombre: Ana López" in prompt.system
        assert prompt.user == "mi correo es ana@acme.com"


class TestResponsePrompt:

    def test_embeds_detections_and_conversation(self, registered_context, catalog):
        prompt = build_response_prompt(
            "quiero una prueba",
            ["solicitud_prueba", "interes_en_servicio"],
            {"nombre": "Ana López"},
            registered_context,
            catalog,
            primary_intent="solicitud_prueba",
        )

        assert prompt.system == SYSTEM_PROMPT
        assert prompt.history == []
        assert 'Mensaje del usuario: "quiero una prueba"' in prompt.user
        assert 'Intenciones detectadas: ["solicitud_prueba", "interes_en_servicio"]' in prompt.user
        assert 'Entidades extraídas: {"nombre": "Ana López"}' in prompt.user
        assert "Información del usuario: Ana López" in prompt.user
        assert 'Temas anteriores: ["pricing_inquiry"]' in prompt.user
        assert "Usuario: Hola\nAsistente: ¡Hola Ana!" in prompt.user
        assert "(7 días)" in prompt.user
        assert "- Facturación electrónica" in prompt.user

    def test_recent_messages_trimmed(self, catalog):
        context = ContextView(recent_messages=[_msg("viejo " * 300), _msg("nuevo")])
        prompt = build_response_prompt("x", [], {}, context, catalog)

        assert "Usuario: nuevo" in prompt.user
        assert "viejo" not in prompt.user


class TestTemplateRegistry:

    def test_builtins_available(self):
        assert available_templates() == sorted([INTENT_DETECTION, ENTITY_EXTRACTION, USER_RESPONSE])
        assert load_template("no-existe") is None

    def test_directory_override(self, tmp_path, registered_context, catalog):
        (tmp_path / f"{INTENT_DETECTION}.tmpl").write_text(
            "Clasifica para {{context.user_profile.name}}: {{JSON.stringify supported_intents}}",
            encoding="utf-8",
        )
        (tmp_path / "extra.tmpl").write_text("x", encoding="utf-8")

        prompt = build_intent_prompt("Hola", registered_context, catalog, templates_dir=tmp_path)

        assert prompt.system.startswith('Clasifica para Ana López: ["saludo"')
        assert "extra" in available_templates(tmp_path)
        assert load_template(ENTITY_EXTRACTION, tmp_path) == BUILTIN_TEMPLATES[ENTITY_EXTRACTION]

    def test_broken_override_falls_back_to_message(self, tmp_path, catalog):
        (tmp_path / f"{USER_RESPONSE}.tmpl").write_text("", encoding="utf-8")
        prompt = build_response_prompt("Hola", [], {}, ContextView.empty(), catalog, templates_dir=tmp_path)
        assert prompt.user == "Hola"
