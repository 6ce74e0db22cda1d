from typing import Dict, List, Optional, Union

from .base import ModelBackend
from .types import ModelRequest, ModelResponse

# Canned outputs per task, shaped like real model answers
DEFAULT_OUTPUTS: Dict[str, str] = {
    "detect_intents": '{"intents": []}',
    "extract_entities": "{}",
    "respond": "Gracias por tu mensaje. ¿En qué más puedo ayudarte?",
}


class StubModelBackend(ModelBackend):
    """
    Deterministic fake model for testing and CI.

    Outputs come from `responses` (task → text, or task → list of texts
    consumed in order), then DEFAULT_OUTPUTS. The "fail" task, or a task
    listed in `failing_tasks`, returns a recoverable error.
    Every request is recorded in `requests` for assertions.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Union[str, List[str]]]] = None,
        failing_tasks: Optional[List[str]] = None,
    ):
        self.responses: Dict[str, Union[str, List[str]]] = dict(responses or {})
        self.failing_tasks = set(failing_tasks or [])
        self.requests: List[ModelRequest] = []

    def _next_output(self, task: str) -> str:
        scripted = self.responses.get(task)
        if isinstance(scripted, list):
            if scripted:
                return scripted.pop(0)
            scripted = None
        if scripted is not None:
            return scripted
        return DEFAULT_OUTPUTS.get(task, f"Default stub output for task: {task}")

    def generate(self, request: ModelRequest) -> ModelResponse:
        """
        Generate a deterministic response based on task type.

        Args:
            request: ModelRequest with task, prompt, and optional parameters

        Returns:
            ModelResponse with deterministic output based on task
        """
        self.requests.append(request)

        if request.task == "fail" or request.task in self.failing_tasks:
            return ModelResponse(
                status="recoverable_error",
                error_type="invalid_output",
                metadata={"backend": "stub", "trace_id": request.trace_id},
            )

        return ModelResponse(
            status="success",
            output=self._next_output(request.task),
            metadata={"backend": "stub", "task": request.task, "trace_id": request.trace_id},
        )
