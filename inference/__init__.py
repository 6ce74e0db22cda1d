"""
Model boundary layer for LLM inference.

This package provides a clean abstraction for model invocation,
allowing the conversation engine to remain agnostic of the backend.

Supported backends:
- StubModelBackend: Deterministic scripted model (default for CI/tests)
- OllamaModelBackend: Local Ollama inference over /api/chat

Example usage:
    from inference import StubModelBackend, ModelRequest

    backend = StubModelBackend(responses={"detect_intents": '{"intents": ["saludo"]}'})
    request = ModelRequest(task="detect_intents", prompt="Hola")
    response = backend.generate(request)
"""

from .types import ModelRequest, ModelResponse, ModelStatus
from .base import ModelBackend
from .stub import StubModelBackend
from .ollama import OllamaModelBackend

__all__ = [
    "ModelRequest",
    "ModelResponse",
    "ModelStatus",
    "ModelBackend",
    "StubModelBackend",
    "OllamaModelBackend",
]
