"""
Tool registry exposed to the chat model.
"""
from typing import Any, Dict, List

from langchain_core.tools import StructuredTool

from roadside.orchestration.tools.executor import ToolExecutor, TOOL_SCHEMAS


TOOL_DESCRIPTIONS = {
    "save_claim_data": (
        "Save claim details as soon as the driver provides them. "
        "Send only the fields you learned; corrections overwrite earlier values."
    ),
    "get_customer_by_policy": (
        "Look up the customer behind a policy number. Use the result to fill in "
        "name, phone and vehicle details, then confirm them with the driver."
    ),
    "find_policy_by_phone": (
        "Find policies by the holder's phone number when the driver does not know "
        "their policy number."
    ),
    "find_policy_by_name": (
        "Find policies by the holder's name when the driver does not know their "
        "policy number. Several matches mean you must ask which one is theirs."
    ),
    "get_policy_coverage": "Get the coverage flags and insured vehicle for a policy.",
    "record_coverage_decision": (
        "Record the coverage decision for the services the driver needs. Call only "
        "after the driver confirmed their details; set user_confirmed accordingly."
    ),
    "get_available_providers": "List providers for a service type, best rated first.",
    "arrange_services": (
        "Dispatch covered services and notify the driver by SMS and email. Call only "
        "after the driver agreed; set user_confirmed accordingly."
    ),
    "complete_claim": "Close the claim once the driver confirms they have what they need.",
}

TOOL_NAMES = list(TOOL_SCHEMAS)


def _make_tool(executor: ToolExecutor, name: str) -> StructuredTool:
    def run(**kwargs: Any) -> Dict[str, Any]:
        return executor.execute(name, kwargs)

    return StructuredTool.from_function(
        func=run,
        name=name,
        description=TOOL_DESCRIPTIONS[name],
        args_schema=TOOL_SCHEMAS[name],
    )


def build_claim_tools(executor: ToolExecutor) -> List[StructuredTool]:
    """StructuredTools bound to one claim's executor, in registry order."""
    return [_make_tool(executor, name) for name in TOOL_NAMES]
