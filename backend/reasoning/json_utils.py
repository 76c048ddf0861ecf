"""JSON extraction for model responses that should contain a single object."""
import json
import re
from typing import Dict, Any, Optional

from backend.config.logging_config import get_logger

logger = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def _as_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _balanced_object(text: str, start: int) -> Optional[str]:
    """Slice the brace-balanced object starting at ``start``, ignoring braces inside strings."""
    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json_from_text(text: str) -> Dict[str, Any]:
    """
    Extract a JSON object from model response text.

    Tries, in order:
    1. The whole response (JSON mode replies)
    2. A fenced ```json block
    3. The first brace-balanced object (tolerates leading prose and trailing text)

    Args:
        text: Response text potentially containing JSON

    Returns:
        Parsed JSON object

    Raises:
        json.JSONDecodeError: If no JSON object can be recovered
    """
    text = (text or "").strip().lstrip("\ufeff")

    parsed = _as_object(text)
    if parsed is not None:
        return parsed

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        parsed = _as_object(fenced.group(1))
        if parsed is not None:
            return parsed

    first_brace = text.find("{")
    if first_brace == -1:
        raise json.JSONDecodeError("No JSON object found", text, 0)

    candidate = _balanced_object(text, first_brace)
    if candidate is None:
        raise json.JSONDecodeError("Unclosed braces in JSON", text, first_brace)

    logger.debug("Recovered JSON object from surrounding text", offset=first_brace)
    result = json.loads(candidate)
    if not isinstance(result, dict):
        raise json.JSONDecodeError("Top-level JSON value is not an object", candidate, 0)
    return result
