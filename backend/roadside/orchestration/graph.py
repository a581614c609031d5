"""
Claim Turn Graph - runs one conversational turn on one claim.

build_context -> call_model -> (execute_tools -> call_model)* -> respond

The chat model and the tool executor travel in config["configurable"] so a
single compiled graph serves every claim.
"""
import json
from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, END

from roadside.core.config import settings
from roadside.core.langfuse_handler import get_llm_callbacks
from roadside.core.logging import get_logger
from roadside.db.models import COLLECTED_FIELDS
from roadside.orchestration.prompts import (
    SYSTEM_PROMPT,
    ENVELOPE_INSTRUCTIONS,
    build_claim_context,
    build_stage_guidance,
)
from roadside.orchestration.state import TurnState, create_turn_state
from roadside.orchestration.tools import ToolExecutor, build_claim_tools
from roadside.orchestration.utils import parse_turn_envelope

logger = get_logger(__name__)


ROUND_LIMIT_MESSAGE = (
    "I'm sorry, I'm having trouble completing that step right now. "
    "Could you tell me again what you'd like me to do next?"
)

EMPTY_REPLY_MESSAGE = (
    "Sorry, I didn't quite catch that. Could you tell me a bit more about what you need?"
)


def _configurable(config: RunnableConfig) -> Dict[str, Any]:
    return (config or {}).get("configurable", {})


def message_text(message: BaseMessage) -> str:
    """Plain text of a model message, joining text blocks when content is a list."""
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts).strip()


def history_to_messages(history: List[dict]) -> List[BaseMessage]:
    """Transcript entries as chat messages; human-agent entries speak as the assistant."""
    messages: List[BaseMessage] = []
    for entry in history or []:
        content = entry.get("content")
        if not content:
            continue
        if entry.get("role") == "user":
            messages.append(HumanMessage(content=content))
        else:
            messages.append(AIMessage(content=content))
    return messages


def build_context(state: TurnState, config: RunnableConfig) -> dict:
    """Assemble system prompt, claim state, stage guidance and history."""
    executor: ToolExecutor = _configurable(config)["executor"]
    claim = executor.store.load(state["claim_id"])
    envelope_mode = state["structured_output"] == "json_envelope"

    policy = None
    if envelope_mode and claim.policy_number:
        policy = executor.directory.find_policy_by_number(claim.policy_number)

    system = SYSTEM_PROMPT
    if envelope_mode:
        system += ENVELOPE_INSTRUCTIONS
    system += "\n\n" + build_claim_context(claim, policy)
    system += "\n\nGUIDANCE FOR THIS TURN\n" + build_stage_guidance(claim)

    messages: List[BaseMessage] = [SystemMessage(content=system)]
    messages.extend(history_to_messages(state["history"]))
    messages.append(HumanMessage(content=state["user_message"]))

    return {"messages": messages, "stage": claim.stage.value}


def call_model(state: TurnState, config: RunnableConfig) -> dict:
    """Invoke the chat model, with the claim tools bound in tool-calling mode."""
    options = _configurable(config)
    llm: BaseChatModel = options["llm"]

    if state["structured_output"] == "tool_calling":
        model = llm.bind_tools(build_claim_tools(options["executor"]))
    else:
        model = llm

    response = model.invoke(state["messages"], config)
    return {"messages": [response]}


def execute_tools(state: TurnState, config: RunnableConfig) -> dict:
    """Run every tool call from the last model message, in order."""
    executor: ToolExecutor = _configurable(config)["executor"]
    last = state["messages"][-1]
    round_number = state["tool_rounds"] + 1

    tool_messages: List[BaseMessage] = []
    trace = list(state["tool_trace"])
    for index, call in enumerate(last.tool_calls):
        name = call.get("name")
        result = executor.execute(name, call.get("args") or {})
        trace.append({"round": round_number, "tool": name, "success": result.get("success", True)})
        tool_messages.append(ToolMessage(
            content=json.dumps(result, default=str),
            tool_call_id=call.get("id") or f"call_{round_number}_{index}",
            name=name,
        ))

    return {"messages": tool_messages, "tool_rounds": round_number, "tool_trace": trace}


def round_limit(state: TurnState) -> dict:
    """Stop a model that keeps asking for tools."""
    logger.warning(
        f"Claim {state['claim_id']}: tool round limit of {state['max_tool_rounds']} reached, "
        f"ending turn with fallback reply"
    )
    return {"ai_response": ROUND_LIMIT_MESSAGE, "fallback_reason": "tool_round_limit"}


def respond(state: TurnState) -> dict:
    """Take the final model message as the reply."""
    text = message_text(state["messages"][-1])
    if not text:
        logger.warning(f"Claim {state['claim_id']}: model returned an empty reply")
        return {
            "ai_response": EMPTY_REPLY_MESSAGE,
            "fallback_reason": "empty_reply",
            "anomalies": state["anomalies"] + ["empty_reply"],
        }
    return {"ai_response": text}


def apply_envelope(state: TurnState, config: RunnableConfig) -> dict:
    """Map a JSON envelope reply onto tool calls so the same guards apply."""
    executor: ToolExecutor = _configurable(config)["executor"]
    raw = message_text(state["messages"][-1])
    anomalies = list(state["anomalies"])
    trace = list(state["tool_trace"])

    envelope = parse_turn_envelope(raw)
    if envelope is None:
        logger.warning(f"Claim {state['claim_id']}: reply was not a JSON envelope, using raw text")
        anomalies.append("envelope_unparseable")
        return {
            "ai_response": raw or EMPTY_REPLY_MESSAGE,
            "anomalies": anomalies,
            "fallback_reason": "envelope_unparseable",
        }
    if envelope.degraded:
        anomalies.append("envelope_decisions_discarded")

    def run(name: str, args: dict) -> dict:
        result = executor.execute(name, args)
        trace.append({"round": 1, "tool": name, "success": result.get("success", True)})
        if result.get("success") is False:
            logger.info(f"Claim {state['claim_id']}: envelope action {name} refused: {result.get('error')}")
        return result

    extracted = {k: v for k, v in envelope.extracted_data.items() if k in COLLECTED_FIELDS}
    ignored = set(envelope.extracted_data) - set(extracted)
    if ignored:
        anomalies.append(f"unknown_fields:{','.join(sorted(ignored))}")
    if extracted:
        run("save_claim_data", extracted)

    decisions = envelope.decisions
    if decisions.coverage is not None:
        run("record_coverage_decision", {
            "is_covered": decisions.coverage.is_covered,
            "services_needed": decisions.coverage.services_needed,
            "coverage_explanation": decisions.coverage.coverage_explanation,
            "user_confirmed": decisions.user_confirmed,
        })
    if decisions.services_to_arrange:
        run("arrange_services", {
            "services_to_arrange": [s.model_dump() for s in decisions.services_to_arrange],
            "notification_message": decisions.notification_message or "",
            "user_confirmed": decisions.user_confirmed,
        })
    if decisions.complete:
        run("complete_claim", {"user_confirmed": decisions.user_confirmed})

    # next_stage is advisory; the guards above decide the real stage
    if envelope.next_stage and envelope.next_stage != executor.store.load(state["claim_id"]).stage.value:
        anomalies.append(f"next_stage_mismatch:{envelope.next_stage}")

    if not envelope.message.strip():
        logger.warning(f"Claim {state['claim_id']}: envelope carried an empty message")
        anomalies.append("empty_reply")
        return {
            "ai_response": EMPTY_REPLY_MESSAGE,
            "anomalies": anomalies,
            "tool_trace": trace,
            "fallback_reason": "empty_reply",
        }

    return {"ai_response": envelope.message, "anomalies": anomalies, "tool_trace": trace}


def finalize(state: TurnState, config: RunnableConfig) -> dict:
    """Record the stage the tools left the claim in."""
    executor: ToolExecutor = _configurable(config)["executor"]
    claim = executor.store.load(state["claim_id"])
    return {"stage": claim.stage.value}


def route_after_model(state: TurnState) -> str:
    """Determine next node after a model call."""
    if state["structured_output"] == "json_envelope":
        return "apply_envelope"

    last = state["messages"][-1]
    if getattr(last, "tool_calls", None):
        if state["tool_rounds"] >= state["max_tool_rounds"]:
            return "round_limit"
        return "execute_tools"
    return "respond"


def build_turn_graph() -> StateGraph:
    """Build the claim turn graph."""
    workflow = StateGraph(TurnState)

    workflow.add_node("build_context", build_context)
    workflow.add_node("call_model", call_model)
    workflow.add_node("execute_tools", execute_tools)
    workflow.add_node("round_limit", round_limit)
    workflow.add_node("respond", respond)
    workflow.add_node("apply_envelope", apply_envelope)
    workflow.add_node("finalize", finalize)

    workflow.set_entry_point("build_context")
    workflow.add_edge("build_context", "call_model")

    workflow.add_conditional_edges(
        "call_model",
        route_after_model,
        {
            "execute_tools": "execute_tools",
            "round_limit": "round_limit",
            "respond": "respond",
            "apply_envelope": "apply_envelope",
        }
    )

    workflow.add_edge("execute_tools", "call_model")
    workflow.add_edge("round_limit", "finalize")
    workflow.add_edge("respond", "finalize")
    workflow.add_edge("apply_envelope", "finalize")
    workflow.add_edge("finalize", END)

    return workflow


# Compiled graph instance
turn_graph = build_turn_graph().compile()


def run_turn_graph(
    llm: BaseChatModel,
    executor: ToolExecutor,
    claim_id: str,
    user_message: str,
    history: Optional[List[dict]] = None,
    structured_output: Optional[str] = None,
    max_tool_rounds: Optional[int] = None,
) -> TurnState:
    """Run one turn and return the final graph state."""
    rounds = max_tool_rounds or settings.MAX_TOOL_ROUNDS
    state = create_turn_state(
        claim_id=claim_id,
        user_message=user_message,
        history=history,
        max_tool_rounds=rounds,
        structured_output=structured_output or settings.STRUCTURED_OUTPUT,
    )
    config: RunnableConfig = {
        "configurable": {"llm": llm, "executor": executor},
        "callbacks": get_llm_callbacks(),
        # two steps per tool round plus the fixed nodes
        "recursion_limit": 2 * rounds + 10,
        "run_name": "claim_turn",
    }
    return turn_graph.invoke(state, config)
