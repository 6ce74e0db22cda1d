"""
LLM output parsing tests.

Models wrap JSON in prose, code fences or truncate it; parsing must reduce
whatever comes back to catalog-valid values and never raise.
"""

from agent.nlp import extract_json_object, parse_entity_response, parse_intent_response

INTENTS = ["saludo", "solicitud_prueba", "consulta_precio"]
ENTITIES = ["nombre", "email", "monto"]


class TestExtractJsonObject:

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_object_inside_prose_and_fences(self):
        output = 'Claro, aquí está:\n```json\n{"intents": ["saludo"]}\n```\nSaludos.'
        assert extract_json_object(output) == {"intents": ["saludo"]}

    def test_nested_and_braces_in_strings(self):
        output = 'x {"a": {"b": "}{"}, "c": "\\"}"} y {"d": 2}'
        assert extract_json_object(output) == {"a": {"b": "}{"}, "c": '"}'}

    def test_truncated_or_missing(self):
        assert extract_json_object('{"intents": ["saludo"') is None
        assert extract_json_object("sin json") is None
        assert extract_json_object("") is None

    def test_non_object_json(self):
        assert extract_json_object("[1, 2]") is None


class TestParseIntentResponse:

    def test_filters_unknown_and_duplicates(self):
        output = '{"intents": ["saludo", "inventada", "saludo", "consulta_precio"]}'
        assert parse_intent_response(output, INTENTS) == ["saludo", "consulta_precio"]

    def test_empty_list(self):
        assert parse_intent_response('{"intents": []}', INTENTS) == []

    def test_fallback_to_quoted_names(self):
        output = 'Las intenciones son "saludo" y \'solicitud_prueba\''
        assert parse_intent_response(output, INTENTS) == ["saludo", "solicitud_prueba"]

    def test_garbage(self):
        assert parse_intent_response("no sé", INTENTS) == []
        assert parse_intent_response("", INTENTS) == []

    def test_non_string_items_ignored(self):
        assert parse_intent_response('{"intents": [1, null, "saludo"]}', INTENTS) == ["saludo"]


class TestParseEntityResponse:

    def test_flat_object(self):
        output = '{"nombre": " Ana ", "email": "ana@acme.com"}'
        assert parse_entity_response(output, ENTITIES) == {"nombre": "Ana", "email": "ana@acme.com"}

    def test_nested_under_entities(self):
        output = 'Resultado: {"entities": {"monto": 500000}}'
        assert parse_entity_response(output, ENTITIES) == {"monto": "500000"}

    def test_drops_unknown_null_and_blank(self):
        output = '{"nombre": null, "email": "  ", "color": "rojo", "monto": "100"}'
        assert parse_entity_response(output, ENTITIES) == {"monto": "100"}

    def test_unparsable(self):
        assert parse_entity_response("ninguna entidad", ENTITIES) == {}
        assert parse_entity_response("", ENTITIES) == {}
