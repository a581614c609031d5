"""
Utility functions for LLM response parsing.
"""
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from roadside.core.logging import get_logger

logger = get_logger(__name__)


def extract_json_from_llm_response(content: str) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from LLM output, handling common formatting issues.

    Tries, in order:
    1. Direct JSON parsing
    2. Markdown code block extraction (```json or ```)
    3. The outermost { ... } object found by brace matching
    4. The same object with trailing commas removed

    Returns None if no object could be recovered.
    """
    if not content:
        return None

    content = content.strip()

    try:
        result = json.loads(content)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    for pattern in (r'```json\s*([\s\S]*?)\s*```', r'```\s*([\s\S]*?)\s*```'):
        match = re.search(pattern, content, re.DOTALL)
        if match:
            parsed = _loads_object(match.group(1).strip())
            if parsed is not None:
                return parsed

    candidate = _outermost_object(content)
    if candidate is None:
        return None
    parsed = _loads_object(candidate)
    if parsed is not None:
        return parsed
    return _loads_object(_fix_common_json_issues(candidate))


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        result = None
    if result is None and text.startswith("{"):
        try:
            result = json.loads(_fix_common_json_issues(text))
        except json.JSONDecodeError:
            return None
    return result if isinstance(result, dict) else None


def _outermost_object(content: str) -> Optional[str]:
    """Slice of the first balanced {...} object, ignoring braces inside strings."""
    start = content.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(content)):
        char = content[i]
        if escape_next:
            escape_next = False
            continue
        if char == '\\':
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return content[start:i + 1]
    return None


def _fix_common_json_issues(json_str: str) -> str:
    """Remove trailing commas before } or ]."""
    return re.sub(r',\s*([}\]])', r'\1', json_str)


class EnvelopeCoverage(BaseModel):
    is_covered: bool = False
    services_needed: List[str] = Field(default_factory=list)
    coverage_explanation: str = ""


class EnvelopeService(BaseModel):
    service_type: str
    provider_id: Optional[str] = None


class EnvelopeDecisions(BaseModel):
    user_confirmed: bool = False
    coverage: Optional[EnvelopeCoverage] = None
    services_to_arrange: Optional[List[EnvelopeService]] = None
    notification_message: Optional[str] = None
    complete: bool = False


class TurnEnvelope(BaseModel):
    """Single-call structured reply used when native tool calling is off."""
    message: str
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    decisions: EnvelopeDecisions = Field(default_factory=EnvelopeDecisions)
    next_stage: Optional[str] = None
    # Set when parts of the reply had to be discarded
    degraded: bool = False


def parse_turn_envelope(content: str) -> Optional[TurnEnvelope]:
    """
    Parse a JSON envelope reply.

    A reply whose message survives but whose decisions are malformed keeps the
    message and drops everything else. Returns None when no message can be
    recovered at all.
    """
    data = extract_json_from_llm_response(content)
    if data is None:
        return None

    if data.get("extracted_data") is None:
        data["extracted_data"] = {}
    if data.get("decisions") is None:
        data["decisions"] = {}

    try:
        return TurnEnvelope.model_validate(data)
    except ValidationError as e:
        message = data.get("message")
        if isinstance(message, str) and message.strip():
            logger.warning(f"Discarding malformed envelope fields: {e.error_count()} error(s)")
            return TurnEnvelope(message=message, degraded=True)
        return None
