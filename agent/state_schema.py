"""
Turn state schema.

TurnState is the single source of truth for one message travelling through
the conversation graph. Nodes return partial updates; the memory store is
the only place where state outlives the turn.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agent.memory.types import ContextView
from agent.nlp.reconciler import CoherenceAnalysis, ContextChange


@dataclass
class TurnState:
    """
    Complete state of one conversational turn.

    Invariants:
    - conversation_key, trace_id, message and sender_name are set before
      the graph runs and never rewritten by nodes
    - raw_intents / raw_entities hold parsed model output only;
      intents / entities hold the reconciled values written to memory
    - context is the projection before reconciliation until the reconcile
      node replaces it with the post-update projection
    - model_errors lists the tasks whose model call failed
    """

    # Identity
    conversation_key: str = ""
    trace_id: str = ""
    message: str = ""
    sender_name: Optional[str] = None

    # Context
    context: Optional[ContextView] = None

    # Detection
    raw_intents: List[str] = field(default_factory=list)
    raw_entities: Dict[str, str] = field(default_factory=dict)

    # Reconciliation
    intents: List[str] = field(default_factory=list)
    entities: Dict[str, str] = field(default_factory=dict)
    context_change: Optional[ContextChange] = None
    coherence: Optional[CoherenceAnalysis] = None
    primary_intent: Optional[str] = None

    # Output
    reply: Optional[str] = None
    status: str = "success"  # success | fallback
    registered: bool = False
    model_errors: List[str] = field(default_factory=list)
