"""
Prompt Builder Layer
====================

Assembles the chat prompts for the three LLM tasks of a turn.

Responsibilities:
- Defines the SYSTEM_PROMPT behavioral contract of the reply generator
- Renders the registry templates against the ContextView and the catalog
- Enforces a character budget on the recent messages embedded in prompts

Invariants:
- Recent messages embedded in any prompt never exceed _MAX_HISTORY_CHARS
  combined; the oldest messages are dropped first
- The user message itself is never truncated
- Rendering never raises (see template.render_template)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from agent.memory.types import ContextView, MessageEntry
from agent.nlp.catalog import NLPCatalog
from agent.prompting.template import render_template
from agent.prompting.templates import (
    ENTITY_EXTRACTION,
    INTENT_DETECTION,
    USER_RESPONSE,
    load_template,
)

logger = logging.getLogger(__name__)

# ── Budget Constants ──────────────────────────────────────────────────────────
_MAX_HISTORY_CHARS: int = 1500   # cap on recent messages embedded in a prompt
_MAX_HISTORY_TURNS: int = 4      # chat turns replayed to intent/entity prompts

# ── Behavioral Contract ───────────────────────────────────────────────────────
SYSTEM_PROMPT = """Eres el asistente virtual de WhatsApp de ERP Demo.

Comportamiento:
- Responde en español, con tono amigable y profesional.
- Sé conciso: máximo 3-4 oraciones salvo que des instrucciones detalladas.
- Usa el nombre del usuario cuando lo conozcas.
- No inventes información que no esté en el contexto.
- No menciones que eres un modelo de lenguaje o una IA.
- No solicites datos sensibles como números de tarjeta de crédito.
- Limita los emojis a 1-2 por mensaje."""


@dataclass
class ChatPrompt:
    """System instruction, replayed turns and the final user content."""

    system: str
    user: str
    history: List[Dict[str, str]] = field(default_factory=list)


def trim_history(messages: Sequence[MessageEntry], budget: int = _MAX_HISTORY_CHARS) -> List[MessageEntry]:
    """Keep the newest messages whose combined content fits the budget."""
    kept: List[MessageEntry] = []
    used = 0
    for message in reversed(messages):
        size = len(message.content)
        if used + size > budget:
            break
        kept.append(message)
        used += size
    kept.reverse()
    return kept


def _chat_turns(context: ContextView) -> List[Dict[str, str]]:
    recent = trim_history(context.recent_messages[-_MAX_HISTORY_TURNS:])
    return [
        {"role": "user" if m.is_from_user else "assistant", "content": m.content}
        for m in recent
    ]


def _base_variables(context: ContextView, catalog: NLPCatalog) -> Dict[str, Any]:
    return {
        "context": context.to_dict(),
        "service": catalog.service.model_dump(),
        "supported_intents": catalog.supported_intents,
        "supported_entities": catalog.supported_entities,
        "intent_examples": catalog.intent_examples(),
        "entity_examples": catalog.entity_examples(),
    }


def _render(name: str, variables: Dict[str, Any], templates_dir: Union[str, Path, None]) -> str:
    template = load_template(name, templates_dir)
    if template is None:
        return ""
    return render_template(template, variables)


def build_intent_prompt(
    message: str,
    context: ContextView,
    catalog: NLPCatalog,
    templates_dir: Union[str, Path, None] = None,
) -> ChatPrompt:
    """Intent detection: rendered template as system, recent turns replayed."""
    system = _render(INTENT_DETECTION, _base_variables(context, catalog), templates_dir)
    return ChatPrompt(system=system, user=message, history=_chat_turns(context))


def build_entity_prompt(
    message: str,
    context: ContextView,
    catalog: NLPCatalog,
    templates_dir: Union[str, Path, None] = None,
) -> ChatPrompt:
    """Contextual entity extraction: same layout as intent detection."""
    system = _render(ENTITY_EXTRACTION, _base_variables(context, catalog), templates_dir)
    return ChatPrompt(system=system, user=message, history=_chat_turns(context))


def build_response_prompt(
    message: str,
    intents: Sequence[str],
    entities: Dict[str, str],
    context: ContextView,
    catalog: NLPCatalog,
    templates_dir: Union[str, Path, None] = None,
    primary_intent: Optional[str] = None,
) -> ChatPrompt:
    """
    Reply generation.

    SYSTEM_PROMPT is the system role; the rendered user-response template
    (with the recent conversation embedded) is the user content.
    """
    variables = _base_variables(context, catalog)
    variables.update({
        "message": message,
        "intents": list(intents),
        "entities": dict(entities),
        "primary_intent": primary_intent,
        "recent_messages": [
            {"is_from_user": m.is_from_user, "content": m.content}
            for m in trim_history(context.recent_messages)
        ],
    })
    user = _render(USER_RESPONSE, variables, templates_dir) or message
    return ChatPrompt(system=SYSTEM_PROMPT, user=user)
