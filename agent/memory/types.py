"""
Conversational memory types and contracts.

Defines the per-user memory record, its bounded histories, the read-only
context projection handed to prompt construction, and the explicit result
type returned by best-effort memory operations.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

ResultStatus = Literal["ok", "empty"]

T = TypeVar("T")


def utcnow() -> datetime:
    """Default clock for the memory layer."""
    return datetime.now(timezone.utc)


class Intent(str, Enum):
    """Intents that take part in topic derivation, in priority order."""

    SOLICITUD_PRUEBA = "solicitud_prueba"
    SOPORTE_TECNICO = "soporte_tecnico"
    QUEJA = "queja"
    CANCELACION = "cancelacion"
    CONSULTA_PRECIO = "consulta_precio"
    CONSULTA_CARACTERISTICAS = "consulta_caracteristicas"
    INTERES_EN_SERVICIO = "interes_en_servicio"
    CONFIRMACION = "confirmacion"
    AGRADECIMIENTO = "agradecimiento"
    SALUDO = "saludo"
    DESPEDIDA = "despedida"


class Topic(str, Enum):
    """Coarse conversation phase. Always derived from intents."""

    TRIAL_REQUEST = "trial_request"
    TECHNICAL_SUPPORT = "technical_support"
    COMPLAINT = "complaint"
    CANCELLATION = "cancellation"
    PRICING_INQUIRY = "pricing_inquiry"
    FEATURES_INQUIRY = "features_inquiry"
    SERVICE_INTEREST = "service_interest"
    CONFIRMATION = "confirmation"
    GRATITUDE = "gratitude"
    GREETING = "greeting"
    FAREWELL = "farewell"
    GENERAL = "general"


@dataclass
class MemoryConfig:
    """Limits and time windows of the conversational memory."""

    max_history_length: int = 10
    max_topic_history: int = 5
    max_known_entities: int = 20
    expiration_hours: float = 24
    entity_persistence_threshold: int = 2
    entity_max_age_days: float = 7
    entity_min_confidence: float = 0.3
    sweep_interval_hours: float = 2
    recent_messages: int = 5
    recent_intents: int = 3
    recent_topics: int = 3


@dataclass
class KnownEntity:
    """A remembered fact with its confidence bookkeeping."""

    value: str
    confidence: float
    first_seen: datetime
    last_seen: datetime
    occurrences: int = 1


@dataclass
class UserProfile:
    """Registered-user snapshot, or the unregistered marker."""

    is_registered: bool = False
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    registration_date: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def merge(self, info: Dict[str, Any]) -> None:
        """Shallow-merge profile fields; unknown keys land in attributes."""
        for key, value in info.items():
            if key != "attributes" and key in self.__dataclass_fields__:
                setattr(self, key, value)
            else:
                self.attributes[key] = value


@dataclass
class MessageEntry:
    """One message in the rolling history."""

    content: str
    is_from_user: bool
    timestamp: datetime
    intents: List[str] = field(default_factory=list)
    entities: Dict[str, str] = field(default_factory=dict)


@dataclass
class IntentEntry:
    intent: str
    timestamp: datetime
    strength: float = 1.0


@dataclass
class TopicEntry:
    topic: Topic
    start_time: Optional[datetime]
    end_time: datetime
    duration: float  # seconds


@dataclass
class ConversationState:
    current_topic: Optional[Topic] = None
    topic_start_time: Optional[datetime] = None
    context_strength: float = 0.0


@dataclass
class MemoryDelta:
    """Partial update merged into a memory record."""

    user_info: Optional[Dict[str, Any]] = None
    entities: Optional[Dict[str, str]] = None
    intents: Optional[List[str]] = None
    topic: Optional[Topic] = None
    message: Optional[MessageEntry] = None


@dataclass
class ContextView:
    """
    Read-only projection of a memory record for prompt construction.

    Recomputed on every read; never persisted.
    """

    user_profile: UserProfile = field(default_factory=UserProfile)
    known_entities: Dict[str, str] = field(default_factory=dict)
    recent_messages: List[MessageEntry] = field(default_factory=list)
    recent_intents: List[str] = field(default_factory=list)
    current_topic: Optional[Topic] = None
    topic_history: List[str] = field(default_factory=list)
    context_strength: float = 0.0

    @classmethod
    def empty(cls) -> "ContextView":
        """Unregistered, history-free view."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Plain variable bag for the template renderer."""
        data = asdict(self)
        data["current_topic"] = self.current_topic.value if self.current_topic else None
        return data


@dataclass
class MemoryResult(Generic[T]):
    """
    Outcome of a best-effort memory operation.

    status == "ok": value is the real result.
    status == "empty": the operation fell back; value holds the default
    (empty record, unchanged record or empty view) and error says why.
    """

    status: ResultStatus
    value: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"
