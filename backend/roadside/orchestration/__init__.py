"""
Orchestration package - LangGraph turn graph for roadside claims
"""
from roadside.orchestration.routing import get_llm, LLMProvider
from roadside.orchestration.state import TurnState, create_turn_state
from roadside.orchestration.lifecycle import (
    STAGE_TRANSITIONS,
    TransitionCheck,
    check_transition,
    is_forward,
    missing_required_fields,
    progress_percent,
    stage_index,
)
from roadside.orchestration.graph import turn_graph, run_turn_graph

__all__ = [
    # Routing
    "get_llm",
    "LLMProvider",
    # State
    "TurnState",
    "create_turn_state",
    # Lifecycle
    "STAGE_TRANSITIONS",
    "TransitionCheck",
    "check_transition",
    "is_forward",
    "missing_required_fields",
    "progress_percent",
    "stage_index",
    # Graph
    "turn_graph",
    "run_turn_graph",
]
