"""
Conversation engine.

Public API of the conversational core. Owns the memory store, the context
projector, the catalog and the model backend, serializes messages per
ConversationKey and runs the LangGraph turn pipeline
(see langgraph_orchestrator.py).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union
from uuid import uuid4

from agent.langgraph_orchestrator import ConversationGraph
from agent.memory.base import ProfileStore
from agent.memory.projector import ContextProjector
from agent.memory.store import PLACEHOLDER_EMAIL_DOMAIN, PLACEHOLDER_NAME, ConversationMemoryStore
from agent.memory.topics import classify
from agent.memory.types import ContextView, Intent, MemoryConfig, MemoryDelta, MessageEntry, UserProfile
from agent.nlp.catalog import NLPCatalog
from agent.nlp.reconciler import (
    CoherenceAnalysis,
    ContextChange,
    analyze_coherence,
    detect_context_change,
    expand_intents,
    infer_entities,
    primary_intent,
)
from inference import ModelBackend, StubModelBackend

logger = logging.getLogger(__name__)

RESET_COMMANDS = frozenset({"salir", "reiniciar", "/reset", "cerrar sesión"})

RESET_REPLY = "Tu sesión ha sido reiniciada. Escríbeme cuando quieras para empezar de nuevo."

# Known entity → profile field filled on trial registration
_PROFILE_FIELDS = {"nombre": "name", "email": "email", "empresa": "company", "cargo": "position"}


@dataclass
class ReconciledTurn:
    """Everything reconciliation decided for one user message."""

    context: ContextView
    intents: List[str]
    entities: Dict[str, str]
    change: ContextChange
    coherence: CoherenceAnalysis = field(default_factory=CoherenceAnalysis)
    primary_intent: Optional[str] = None


@dataclass
class ConversationReply:
    """Outcome of handle_message. status: success | fallback | reset."""

    conversation_key: str
    reply: str
    status: str
    trace_id: str
    intents: List[str] = field(default_factory=list)
    entities: Dict[str, str] = field(default_factory=dict)
    topic: Optional[str] = None
    context_change_confidence: float = 0.0
    coherence_score: float = 1.0
    registered: bool = False
    model_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_key": self.conversation_key,
            "reply": self.reply,
            "status": self.status,
            "trace_id": self.trace_id,
            "intents": self.intents,
            "entities": self.entities,
            "topic": self.topic,
            "context_change_confidence": self.context_change_confidence,
            "coherence_score": self.coherence_score,
            "registered": self.registered,
            "model_errors": self.model_errors,
        }


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def is_reset_command(text: str) -> bool:
    return (text or "").strip().lower() in RESET_COMMANDS


def placeholder_profile(key: str, sender_name: Optional[str] = None) -> UserProfile:
    """Durable profile for a first-contact user; name and email get replaced on registration."""
    return UserProfile(name=sender_name or PLACEHOLDER_NAME, email=f"{key}{PLACEHOLDER_EMAIL_DOMAIN}")


class ConversationEngine:
    """
    Conversation engine for the WhatsApp assistant.

    Hard rules:
    - Messages of one ConversationKey are processed one at a time
      (per-key asyncio.Lock); different keys interleave freely
    - A key's lock only lives while a message for that key is in flight
    - handle_message never raises
    - project_context right after reconcile_and_update reflects every write
    """

    def __init__(
        self,
        catalog: NLPCatalog,
        model_backend: Optional[ModelBackend] = None,
        profile_store: Optional[ProfileStore] = None,
        memory_config: Optional[MemoryConfig] = None,
        memory: Optional[ConversationMemoryStore] = None,
        templates_dir: Union[str, Path, None] = None,
        model_timeout_s: int = 30,
    ):
        """
        Args:
            catalog: Intent/entity catalog
            model_backend: ModelBackend instance (StubModelBackend by default)
            profile_store: Durable user/history store (None disables seeding)
            memory_config: Memory limits, used when memory is not given
            memory: Pre-built memory store (tests inject one with a fake clock)
            templates_dir: Optional directory of *.tmpl overrides
            model_timeout_s: Per-call model timeout
        """
        self.catalog = catalog
        self.model_backend = model_backend or StubModelBackend()
        self.memory = memory or ConversationMemoryStore(profile_store, memory_config)
        self.profile_store = profile_store if profile_store is not None else self.memory.profile_store
        self.projector = ContextProjector(self.memory)
        self.templates_dir = templates_dir
        self.model_timeout_s = model_timeout_s
        self.graph = ConversationGraph(self)
        self._locks: Dict[str, _KeyLock] = {}

    @asynccontextmanager
    async def _serialized(self, key: str) -> AsyncIterator[None]:
        """Hold the key's lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @property
    def active_keys(self) -> List[str]:
        """Keys with a message in flight or waiting for its turn."""
        return list(self._locks)

    # ─────────────────────────────────────────────────────
    # CONTEXT API
    # ─────────────────────────────────────────────────────

    def project_context(self, key: str) -> ContextView:
        """Current ContextView of a conversation (empty view on failure)."""
        return self.projector.project(key).value

    def reconcile(
        self,
        key: str,
        message: str,
        raw_intents: Sequence[str],
        raw_entities: Dict[str, str],
        context: Optional[ContextView] = None,
    ) -> ReconciledTurn:
        """
        Reconcile raw detections against the context and write them to memory.

        1. expand intents (patterns + relations)
        2. infer entities the message refers back to
        3. detect the context change and coherence against the pre-update context
        4. write message, intents, entities and topic to memory
        5. project the updated context
        """
        if context is None:
            context = self.project_context(key)

        supported = self.catalog.supported_intents
        intents = expand_intents(message, raw_intents, self.catalog)
        entities = infer_entities(raw_entities, context, message, self.catalog)
        change = detect_context_change(intents, context, supported)
        coherence = analyze_coherence(intents, context, supported)
        main_intent = primary_intent(intents, context, supported)

        if not coherence.is_coherent:
            logger.info(f"Incoherent turn for {key}: {coherence.contextual_clues}")

        delta = MemoryDelta(
            entities=entities or None,
            intents=intents or None,
            topic=classify(intents) if intents else None,
            message=MessageEntry(
                content=message,
                is_from_user=True,
                timestamp=self.memory.now(),
                intents=list(intents),
                entities=dict(entities),
            ),
        )
        result = self.memory.update(key, delta)
        if not result.ok:
            logger.warning(f"Memory update degraded for {key}: {result.error}")

        return ReconciledTurn(
            context=self.project_context(key),
            intents=intents,
            entities=entities,
            change=change,
            coherence=coherence,
            primary_intent=main_intent,
        )

    def reconcile_and_update(
        self,
        key: str,
        message: str,
        raw_intents: Sequence[str],
        raw_entities: Dict[str, str],
    ) -> ContextView:
        """Reconcile detections, update memory, return the fresh ContextView."""
        return self.reconcile(key, message, raw_intents, raw_entities).context

    # ─────────────────────────────────────────────────────
    # REPLY HELPERS
    # ─────────────────────────────────────────────────────

    def fallback_reply(self) -> str:
        service = self.catalog.service
        contact = f" o escribe a {service.admin_contact}" if service.admin_contact else ""
        return (
            f"Lo siento, tuve un problema procesando tu mensaje sobre {service.name}. "
            f"Por favor intenta de nuevo en unos momentos{contact}."
        )

    def transition_phrase(self, change: ContextChange, context: Optional[ContextView]) -> str:
        """Opening sentence announcing a confident topic change; empty for a first topic."""
        if change.previous_topic is None or change.suggested_topic is None:
            return ""
        name = None
        if context is not None:
            name = context.known_entities.get("nombre") or context.user_profile.name
        topic_name = self.catalog.topic_name(change.suggested_topic.value)
        greeting = f"Perfecto, {name}" if name else "Perfecto"
        return f"{greeting}, veo que ahora te interesa {topic_name}. "

    # ─────────────────────────────────────────────────────
    # DURABLE STORE
    # ─────────────────────────────────────────────────────

    def _ensure_user(self, key: str, sender_name: Optional[str]) -> None:
        if self.profile_store.find_user_profile(key) is None:
            self.profile_store.register_user(key, placeholder_profile(key, sender_name))

    async def persist_messages(
        self,
        key: str,
        messages: List[MessageEntry],
        sender_name: Optional[str] = None,
    ) -> None:
        """
        Best-effort append to the durable history.

        First contact registers a placeholder user so the history is
        reloaded when the conversation is initialized again.
        """
        if self.profile_store is None:
            return
        try:
            await asyncio.to_thread(self._ensure_user, key, sender_name)
        except Exception as e:
            logger.error(f"Placeholder registration raised for {key}: {str(e)}")

        for message in messages:
            try:
                stored = await asyncio.to_thread(self.profile_store.record_message, key, message)
            except Exception as e:
                logger.error(f"Durable history write raised for {key}: {str(e)}")
                return
            if not stored:
                logger.warning(f"Durable history write failed for {key}")
                return

    async def register_trial_user(self, key: str, intents: Sequence[str]) -> bool:
        """
        Register a trial requester once their name and email are known.

        Updates the durable profile (best-effort) and the in-memory profile.
        Returns True when the profile changed on this turn.
        """
        if Intent.SOLICITUD_PRUEBA.value not in intents:
            return False

        context = self.project_context(key)
        known = context.known_entities
        if not known.get("nombre") or not known.get("email"):
            return False

        current = context.user_profile
        if current.is_registered and current.name == known["nombre"] and current.email == known["email"]:
            return False

        user_info: Dict[str, Any] = {
            field_name: known[entity_type]
            for entity_type, field_name in _PROFILE_FIELDS.items()
            if known.get(entity_type)
        }
        user_info["is_registered"] = True
        user_info["registration_date"] = current.registration_date or self.memory.now()

        if self.profile_store is not None:
            try:
                stored = await asyncio.to_thread(
                    self.profile_store.register_user, key, replace(current, **user_info)
                )
            except Exception as e:
                logger.error(f"Trial registration raised for {key}: {str(e)}")
                stored = False
            if not stored:
                logger.warning(f"Trial registration not persisted for {key}")

        self.memory.update(key, MemoryDelta(user_info=user_info))
        logger.info(f"Trial requester registered: {key}")
        return True

    # ─────────────────────────────────────────────────────
    # PUBLIC INTERFACE
    # ─────────────────────────────────────────────────────

    async def reset(self, key: str) -> bool:
        """Forget the conversation (logout / reset command)."""
        async with self._serialized(key):
            removed = self.memory.clear(key)
        logger.info(f"Conversation reset: {key}")
        return removed

    async def handle_message(
        self,
        key: str,
        text: str,
        trace_id: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> ConversationReply:
        """
        Process one inbound message end to end.

        Args:
            key: ConversationKey (normalized phone number)
            text: Message text
            trace_id: Optional trace ID (generated if not provided)
            sender_name: Transport profile name, used for first-contact registration

        Returns:
            ConversationReply; never raises
        """
        trace_id = trace_id or str(uuid4())

        if is_reset_command(text):
            await self.reset(key)
            return ConversationReply(conversation_key=key, reply=RESET_REPLY, status="reset", trace_id=trace_id)

        async with self._serialized(key):
            try:
                result = await self.graph.run(key, text, trace_id, sender_name=sender_name)
            except Exception as e:
                logger.error(f"Turn pipeline failed for {key}: {str(e)}", exc_info=True, extra={"trace_id": trace_id})
                return ConversationReply(
                    conversation_key=key,
                    reply=self.fallback_reply(),
                    status="fallback",
                    trace_id=trace_id,
                )

        context = result.get("context")
        change = result.get("context_change")
        coherence = result.get("coherence")
        return ConversationReply(
            conversation_key=key,
            reply=result.get("reply") or self.fallback_reply(),
            status=result.get("status", "success"),
            trace_id=trace_id,
            intents=list(result.get("intents") or []),
            entities=dict(result.get("entities") or {}),
            topic=context.current_topic.value if context and context.current_topic else None,
            context_change_confidence=change.confidence if change else 0.0,
            coherence_score=coherence.coherence_score if coherence else 1.0,
            registered=bool(result.get("registered")),
            model_errors=list(result.get("model_errors") or []),
        )

    def stats(self) -> Dict[str, Any]:
        return self.memory.stats()
