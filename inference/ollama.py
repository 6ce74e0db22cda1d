import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .base import ModelBackend
from .types import ModelRequest, ModelResponse

from agent.prompting.prompt_builder import SYSTEM_PROMPT as _SYSTEM_PROMPT

logger = logging.getLogger(__name__)

# Sampling defaults for short, deterministic JSON answers
DEFAULT_OPTIONS: Dict[str, Any] = {
    "temperature": 0.1,
    "top_p": 0.9,
    "top_k": 50,
    "stop": ["\nUsuario:", "\nUser:", "```"],
}

MAX_RETRIES = 3
RETRY_BASE_DELAY_S = 2.0


class OllamaModelBackend(ModelBackend):
    """
    Ollama backend for local model inference.

    Uses /api/chat so the rendered template can be sent as the system role
    and recent conversation turns can be replayed before the user message.
    Transport errors are retried with exponential backoff; HTTP errors and
    malformed bodies are not.
    """

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://localhost:11434",
        max_retries: int = MAX_RETRIES,
        retry_base_delay_s: float = RETRY_BASE_DELAY_S,
        options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize Ollama backend.

        Args:
            model_name: Name of the model (e.g. "llama3")
            base_url:   Base URL of the Ollama service
            max_retries: Attempts on timeouts / connection errors
            retry_base_delay_s: First backoff delay, doubled per attempt
            options: Sampling options merged over DEFAULT_OPTIONS
        """
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.retry_base_delay_s = retry_base_delay_s
        self.options = {**DEFAULT_OPTIONS, **(options or {})}

    def _build_messages(self, request: ModelRequest) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": request.system or _SYSTEM_PROMPT}]
        for turn in request.history or []:
            if turn.get("content"):
                messages.append({"role": turn.get("role", "user"), "content": turn["content"]})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def generate(self, request: ModelRequest) -> ModelResponse:
        """
        Generate a response using Ollama /api/chat.

        Flow:
          1. Build messages: [system, history..., user]
          2. POST to /api/chat with sampling options
          3. Retry timeouts / connection errors with exponential backoff
          4. Return the assistant content

        Returns:
            ModelResponse; never raises
        """
        base_metadata = {
            "backend": "ollama",
            "model": self.model_name,
            "task": request.task,
            "trace_id": request.trace_id,
        }

        payload = {
            "model": self.model_name,
            "messages": self._build_messages(request),
            "stream": False,
            "options": {**self.options, **(request.options or {})},
        }

        last_error: Optional[str] = None
        timed_out = False

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = requests.post(
                    f"{self.base_url}/api/chat",
                    json=payload,
                    timeout=request.timeout_s,
                )
                resp.raise_for_status()
                data = resp.json()
                output: str = (data.get("message") or {}).get("content", "")

                return ModelResponse(
                    status="success",
                    output=output.strip(),
                    metadata={**base_metadata, "attempts": attempt},
                )

            except (requests.Timeout, requests.ConnectionError) as e:
                timed_out = isinstance(e, requests.Timeout)
                last_error = str(e)
                logger.warning(
                    f"Ollama request failed (attempt {attempt}/{self.max_retries}): {last_error}",
                    extra={"trace_id": request.trace_id, "task": request.task},
                )
                if attempt < self.max_retries:
                    time.sleep(self.retry_base_delay_s * (2 ** (attempt - 1)))

            except Exception as e:
                logger.error(f"Ollama request failed: {str(e)}", extra={"trace_id": request.trace_id})
                return ModelResponse(
                    status="fatal_error",
                    error_type="backend_unavailable",
                    metadata={**base_metadata, "error": str(e)},
                )

        return ModelResponse(
            status="recoverable_error",
            error_type="timeout" if timed_out else "backend_unavailable",
            metadata={**base_metadata, "error": last_error, "attempts": self.max_retries},
        )
