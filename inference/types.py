from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Literal

ModelStatus = Literal["success", "recoverable_error", "fatal_error"]


@dataclass
class ModelRequest:
    task: str                  # "detect_intents" | "extract_entities" | "respond"
    prompt: str
    system: Optional[str] = None                    # system role; backend default when None
    history: Optional[List[Dict[str, str]]] = None  # prior chat turns, oldest first
    options: Optional[Dict[str, Any]] = None        # sampling overrides
    timeout_s: Optional[int] = 30
    trace_id: Optional[str] = None


@dataclass
class ModelResponse:
    status: ModelStatus
    output: Optional[str] = None
    error_type: Optional[str] = None   # timeout | invalid_output | backend_unavailable
    metadata: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"
