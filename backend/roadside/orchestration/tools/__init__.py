"""
Orchestration tools package
"""
from roadside.orchestration.tools.executor import ToolExecutor, TOOL_SCHEMAS, build_notification_message
from roadside.orchestration.tools.definitions import build_claim_tools, TOOL_NAMES, TOOL_DESCRIPTIONS

__all__ = [
    "ToolExecutor",
    "TOOL_SCHEMAS",
    "build_notification_message",
    "build_claim_tools",
    "TOOL_NAMES",
    "TOOL_DESCRIPTIONS",
]
