"""
LLM output parsing.

Models are asked for JSON but routinely wrap it in prose or code fences,
or truncate it. These helpers pull the first balanced JSON object out of
free text and reduce it to catalog-valid intents / entities.

Parsing never raises: unusable output yields an empty result.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


def extract_json_object(output: str) -> Optional[Dict[str, Any]]:
    """
    Find the first {...} in model output using brace-counting.

    Handles nested objects; a truncated object (no matching close) is
    tried as-is and usually fails to decode.

    Returns:
        Decoded dict, or None when no decodable object is present
    """
    if not output:
        return None

    brace_start = output.find("{")
    if brace_start == -1:
        return None

    depth = 0
    brace_end = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(output[brace_start:], brace_start):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                brace_end = i + 1
                break

    json_str = output[brace_start:brace_end] if brace_end != -1 else output[brace_start:]

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _mentioned_intents(output: str, supported_intents: Sequence[str]) -> List[str]:
    return [
        intent
        for intent in supported_intents
        if f'"{intent}"' in output or f"'{intent}'" in output
    ]


def parse_intent_response(output: str, supported_intents: Sequence[str]) -> List[str]:
    """
    Reduce an intent-detection completion to supported intent names.

    Expected shape: {"intents": ["saludo", ...]}. When no such object can
    be decoded, quoted intent names anywhere in the text are used.

    >>> parse_intent_response('Resultado: {"intents": ["saludo", "otro"]}', ["saludo"])
    ['saludo']
    """
    if not output:
        return []

    data = extract_json_object(output)
    if data is not None and isinstance(data.get("intents"), list):
        seen: List[str] = []
        for intent in data["intents"]:
            if isinstance(intent, str) and intent in supported_intents and intent not in seen:
                seen.append(intent)
        return seen

    fallback = _mentioned_intents(output, supported_intents)
    if fallback:
        logger.debug(f"Intent JSON not found, recovered from text: {fallback}")
    else:
        logger.warning("Could not parse intents from model output")
    return fallback


def parse_entity_response(output: str, supported_entities: Sequence[str]) -> Dict[str, str]:
    """
    Reduce an entity-extraction completion to {type: value}.

    Accepts a flat object or one nested under "entities". Unknown types,
    null and blank values are dropped; values are stringified and trimmed.
    """
    data = extract_json_object(output or "")
    if data is None:
        if output and output.strip():
            logger.warning("Could not parse entities from model output")
        return {}

    if isinstance(data.get("entities"), dict):
        data = data["entities"]

    entities: Dict[str, str] = {}
    for entity_type, value in data.items():
        if entity_type not in supported_entities or value is None:
            continue
        text = str(value).strip()
        if text:
            entities[entity_type] = text
    return entities
