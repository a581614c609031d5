"""
State carried through the claim turn graph
"""
from typing import TypedDict, List, Optional, Annotated, Any
import operator

from langchain_core.messages import BaseMessage


class TurnState(TypedDict):
    """State for one conversational turn on one claim."""
    claim_id: str
    user_message: str
    # Prior transcript as {role, content, author?} dicts
    history: List[dict]

    # Model conversation for this turn (system + history + user + tool traffic)
    messages: Annotated[List[BaseMessage], operator.add]
    tool_rounds: int
    max_tool_rounds: int
    structured_output: str

    # Outcome
    ai_response: str
    stage: Optional[str]
    tool_trace: List[dict]
    fallback_reason: Optional[str]
    anomalies: List[str]


def create_turn_state(
    claim_id: str,
    user_message: str,
    history: Optional[List[dict]] = None,
    max_tool_rounds: int = 8,
    structured_output: str = "tool_calling",
) -> TurnState:
    """Create initial state for a turn."""
    return TurnState(
        claim_id=str(claim_id),
        user_message=user_message,
        history=list(history or []),
        messages=[],
        tool_rounds=0,
        max_tool_rounds=max_tool_rounds,
        structured_output=structured_output,
        ai_response="",
        stage=None,
        tool_trace=[],
        fallback_reason=None,
        anomalies=[],
    )
