"""
Prompt Builder layer.

Exports the SYSTEM_PROMPT behavioral contract, the template interpreter,
the template registry and the per-task prompt builders.
"""

from .prompt_builder import (
    SYSTEM_PROMPT,
    ChatPrompt,
    build_entity_prompt,
    build_intent_prompt,
    build_response_prompt,
    trim_history,
)
from .template import TemplateSyntaxError, parse, render_template
from .templates import BUILTIN_TEMPLATES, available_templates, load_template

__all__ = [
    "SYSTEM_PROMPT",
    "ChatPrompt",
    "build_entity_prompt",
    "build_intent_prompt",
    "build_response_prompt",
    "trim_history",
    "TemplateSyntaxError",
    "parse",
    "render_template",
    "BUILTIN_TEMPLATES",
    "available_templates",
    "load_template",
]
