"""
LangGraph-based turn pipeline.

One inbound message flows through a fixed, linear graph:

    project_context → detect_intents → extract_entities
        → reconcile → respond → record → END

- Model calls go through the ModelBackend boundary, off the event loop
- A failed intent/entity call degrades to an empty detection
- A failed reply call degrades to a catalog-based apology
- reconcile is the only node that writes detections into memory
- record appends the bot reply to memory, both messages to the
  durable history, and registers trial requesters once name and
  email are known
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from langgraph.graph import END, StateGraph

from agent.memory.types import MemoryDelta, MessageEntry
from agent.nlp.parsing import parse_entity_response, parse_intent_response
from agent.prompting.prompt_builder import (
    ChatPrompt,
    build_entity_prompt,
    build_intent_prompt,
    build_response_prompt,
)
from agent.state_schema import TurnState
from inference import ModelRequest, ModelResponse

if TYPE_CHECKING:
    from agent.orchestrator import ConversationEngine

logger = logging.getLogger(__name__)

TASK_DETECT_INTENTS = "detect_intents"
TASK_EXTRACT_ENTITIES = "extract_entities"
TASK_RESPOND = "respond"


class ConversationGraph:
    """
    Compiled turn pipeline bound to a ConversationEngine.

    Hard rules:
    - Nodes never raise for model failures; failures are recorded in state
    - Only the reconcile and record nodes mutate memory
    - Routing is linear; degradation happens inside nodes
    """

    def __init__(self, engine: "ConversationEngine"):
        self.engine = engine
        self.graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(TurnState)

        graph.add_node("project_context_node", self._project_context_node)
        graph.add_node("detect_intents_node", self._detect_intents_node)
        graph.add_node("extract_entities_node", self._extract_entities_node)
        graph.add_node("reconcile_node", self._reconcile_node)
        graph.add_node("respond_node", self._respond_node)
        graph.add_node("record_node", self._record_node)

        graph.set_entry_point("project_context_node")
        graph.add_edge("project_context_node", "detect_intents_node")
        graph.add_edge("detect_intents_node", "extract_entities_node")
        graph.add_edge("extract_entities_node", "reconcile_node")
        graph.add_edge("reconcile_node", "respond_node")
        graph.add_edge("respond_node", "record_node")
        graph.add_edge("record_node", END)

        return graph.compile()

    # ─────────────────────────────────────────────────────
    # MODEL BOUNDARY
    # ─────────────────────────────────────────────────────

    async def _call_model(self, task: str, prompt: ChatPrompt, trace_id: str) -> ModelResponse:
        """Run a blocking backend call in a worker thread. Never raises."""
        request = ModelRequest(
            task=task,
            prompt=prompt.user,
            system=prompt.system,
            history=prompt.history,
            timeout_s=self.engine.model_timeout_s,
            trace_id=trace_id,
        )
        try:
            response = await asyncio.to_thread(self.engine.model_backend.generate, request)
        except Exception as e:
            logger.error(f"Model backend raised on {task}: {str(e)}", extra={"trace_id": trace_id})
            return ModelResponse(
                status="fatal_error",
                error_type="backend_unavailable",
                metadata={"error": str(e)},
            )

        if response.status != "success":
            logger.warning(
                f"Model call {task} failed: {response.status} ({response.error_type})",
                extra={"trace_id": trace_id, "task": task},
            )
        return response

    # ─────────────────────────────────────────────────────
    # NODE IMPLEMENTATIONS
    # ─────────────────────────────────────────────────────

    async def _project_context_node(self, state: TurnState) -> Dict[str, Any]:
        return {"context": self.engine.project_context(state.conversation_key)}

    async def _detect_intents_node(self, state: TurnState) -> Dict[str, Any]:
        catalog = self.engine.catalog
        prompt = build_intent_prompt(state.message, state.context, catalog, self.engine.templates_dir)
        response = await self._call_model(TASK_DETECT_INTENTS, prompt, state.trace_id)

        if response.status != "success":
            return {
                "raw_intents": [],
                "model_errors": state.model_errors + [TASK_DETECT_INTENTS],
            }

        intents = parse_intent_response(response.output or "", catalog.supported_intents)
        logger.debug(f"Intents detected for {state.conversation_key}: {intents}")
        return {"raw_intents": intents}

    async def _extract_entities_node(self, state: TurnState) -> Dict[str, Any]:
        catalog = self.engine.catalog
        prompt = build_entity_prompt(state.message, state.context, catalog, self.engine.templates_dir)
        response = await self._call_model(TASK_EXTRACT_ENTITIES, prompt, state.trace_id)

        if response.status != "success":
            return {
                "raw_entities": {},
                "model_errors": state.model_errors + [TASK_EXTRACT_ENTITIES],
            }

        entities = parse_entity_response(response.output or "", catalog.supported_entities)
        logger.debug(f"Entities extracted for {state.conversation_key}: {sorted(entities)}")
        return {"raw_entities": entities}

    async def _reconcile_node(self, state: TurnState) -> Dict[str, Any]:
        turn = self.engine.reconcile(
            state.conversation_key,
            state.message,
            state.raw_intents,
            state.raw_entities,
            context=state.context,
        )
        return {
            "context": turn.context,
            "intents": turn.intents,
            "entities": turn.entities,
            "context_change": turn.change,
            "coherence": turn.coherence,
            "primary_intent": turn.primary_intent,
        }

    async def _respond_node(self, state: TurnState) -> Dict[str, Any]:
        engine = self.engine
        prompt = build_response_prompt(
            state.message,
            state.intents,
            state.entities,
            state.context,
            engine.catalog,
            engine.templates_dir,
            primary_intent=state.primary_intent,
        )
        response = await self._call_model(TASK_RESPOND, prompt, state.trace_id)

        if response.status != "success" or not (response.output or "").strip():
            return {
                "reply": engine.fallback_reply(),
                "status": "fallback",
                "model_errors": state.model_errors + [TASK_RESPOND],
            }

        reply = response.output.strip()
        change = state.context_change
        if change is not None and change.is_transition:
            reply = engine.transition_phrase(change, state.context) + reply

        return {"reply": reply, "status": "success"}

    async def _record_node(self, state: TurnState) -> Dict[str, Any]:
        engine = self.engine
        now = engine.memory.now()
        user_message = MessageEntry(
            content=state.message,
            is_from_user=True,
            timestamp=now,
            intents=list(state.intents),
            entities=dict(state.entities),
        )
        bot_message = MessageEntry(content=state.reply or "", is_from_user=False, timestamp=now)

        engine.memory.update(state.conversation_key, MemoryDelta(message=bot_message))
        await engine.persist_messages(
            state.conversation_key,
            [user_message, bot_message],
            sender_name=state.sender_name,
        )
        registered = await engine.register_trial_user(state.conversation_key, state.intents)
        return {"status": state.status, "registered": registered}

    # ─────────────────────────────────────────────────────
    # PUBLIC INTERFACE
    # ─────────────────────────────────────────────────────

    async def run(
        self,
        conversation_key: str,
        message: str,
        trace_id: str,
        sender_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Execute the graph for one message and return the final state as a dict."""
        initial_state = TurnState(
            conversation_key=conversation_key,
            trace_id=trace_id,
            message=message,
            sender_name=sender_name,
        )
        result = await self.graph.ainvoke(initial_state)

        if isinstance(result, TurnState):
            return vars(result)
        if isinstance(result, dict):
            return result
        raise TypeError(f"Unexpected result type: {type(result)}")
