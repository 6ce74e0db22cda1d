"""
Prompt template interpreter.

A small mustache/handlebars subset, parsed once into an AST and cached per
template string:

    {{path.to.value}}              variable (empty string when missing)
    {{JSON.stringify path}}        JSON encoding of a value
    {{#if path}} .. {{else}} .. {{/if}}
    {{#each path}} .. {{/each}}    over lists and dicts

Inside #each: {{this}}, {{this.field}}, {{@index}} and, for dicts, {{@key}}.
#if uses Python truthiness (empty lists and dicts are false).

render_template() never raises: on any parse or render error the original
template text is returned.
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"\{\{\s*(.*?)\s*\}\}", re.DOTALL)

_MISSING = object()


class TemplateSyntaxError(ValueError):
    """Unbalanced or malformed block tags."""


# ============================================================================
# AST
# ============================================================================

@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Variable:
    path: str


@dataclass(frozen=True)
class Stringify:
    path: str


@dataclass(frozen=True)
class IfBlock:
    path: str
    then: Tuple["Node", ...]
    otherwise: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class EachBlock:
    path: str
    body: Tuple["Node", ...]


Node = Union[Text, Variable, Stringify, IfBlock, EachBlock]


@dataclass
class _Frame:
    """Open block during parsing."""

    kind: str  # "root", "if", "each"
    path: str = ""
    nodes: List[Node] = field(default_factory=list)
    otherwise: Optional[List[Node]] = None

    def append(self, node: Node) -> None:
        if self.otherwise is not None:
            self.otherwise.append(node)
        else:
            self.nodes.append(node)


@lru_cache(maxsize=64)
def parse(template: str) -> Tuple[Node, ...]:
    """
    Parse a template into an AST.

    Raises:
        TemplateSyntaxError: unbalanced #if/#each/else tags
    """
    stack: List[_Frame] = [_Frame(kind="root")]
    position = 0

    for match in _TAG_RE.finditer(template):
        if match.start() > position:
            stack[-1].append(Text(template[position:match.start()]))
        position = match.end()

        tag = match.group(1)

        if tag.startswith("#if "):
            stack.append(_Frame(kind="if", path=tag[4:].strip()))
        elif tag.startswith("#each "):
            stack.append(_Frame(kind="each", path=tag[6:].strip()))
        elif tag == "else":
            frame = stack[-1]
            if frame.kind != "if" or frame.otherwise is not None:
                raise TemplateSyntaxError(f"Unexpected {{{{else}}}} at offset {match.start()}")
            frame.otherwise = []
        elif tag in ("/if", "/each"):
            frame = stack.pop() if len(stack) > 1 else None
            if frame is None or frame.kind != tag[1:]:
                raise TemplateSyntaxError(f"Unexpected {{{{{tag}}}}} at offset {match.start()}")
            if frame.kind == "if":
                node: Node = IfBlock(frame.path, tuple(frame.nodes), tuple(frame.otherwise or ()))
            else:
                node = EachBlock(frame.path, tuple(frame.nodes))
            stack[-1].append(node)
        elif tag.startswith("JSON.stringify "):
            stack[-1].append(Stringify(tag[len("JSON.stringify "):].strip()))
        elif tag.startswith(("#", "/")):
            raise TemplateSyntaxError(f"Unknown block tag {{{{{tag}}}}}")
        else:
            stack[-1].append(Variable(tag))

    if len(stack) != 1:
        raise TemplateSyntaxError(f"Unclosed {{{{#{stack[-1].kind}}}}} block")

    if position < len(template):
        stack[0].append(Text(template[position:]))

    return tuple(stack[0].nodes)


# ============================================================================
# EVALUATION
# ============================================================================

def _get(value: Any, name: str) -> Any:
    if value is None:
        return _MISSING
    if isinstance(value, dict):
        return value.get(name, _MISSING)
    if isinstance(value, (list, tuple)) and name.isdigit():
        index = int(name)
        return value[index] if index < len(value) else _MISSING
    return getattr(value, name, _MISSING)


def _resolve(path: str, scopes: List[Dict[str, Any]]) -> Any:
    """Resolve a dotted path; this/@key/@index come from the innermost #each."""
    parts = path.split(".")
    head = parts[0]

    if head in ("this", "@key", "@index"):
        if len(scopes) < 2:
            return None
        value = scopes[-1].get(head)
    else:
        value = _get(scopes[0], head)

    for part in parts[1:]:
        if value is _MISSING:
            break
        value = _get(value, part)

    return None if value is _MISSING else value


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)) or is_dataclass(value):
        return json.dumps(_jsonable(value), ensure_ascii=False)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _items(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, dict):
        return [{"this": v, "@key": k, "@index": i} for i, (k, v) in enumerate(value.items())]
    if isinstance(value, (list, tuple)):
        return [{"this": v, "@index": i} for i, v in enumerate(value)]
    return []


def _render_nodes(nodes: Tuple[Node, ...], scopes: List[Dict[str, Any]], out: List[str]) -> None:
    for node in nodes:
        if isinstance(node, Text):
            out.append(node.value)
        elif isinstance(node, Variable):
            out.append(_format(_resolve(node.path, scopes)))
        elif isinstance(node, Stringify):
            value = _resolve(node.path, scopes)
            out.append(json.dumps(_jsonable(value if value is not None else {}), ensure_ascii=False))
        elif isinstance(node, IfBlock):
            branch = node.then if _resolve(node.path, scopes) else node.otherwise
            _render_nodes(branch, scopes, out)
        elif isinstance(node, EachBlock):
            for scope in _items(_resolve(node.path, scopes)):
                scopes.append(scope)
                try:
                    _render_nodes(node.body, scopes, out)
                finally:
                    scopes.pop()


def render_template(template: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    Render a template against a variable bag.

    Returns:
        Rendered text, or the original template on any error
    """
    try:
        nodes = parse(template)
        out: List[str] = []
        _render_nodes(nodes, [dict(variables or {})], out)
        return "".join(out)
    except Exception as e:
        logger.error(f"Template rendering failed: {str(e)}")
        return template
