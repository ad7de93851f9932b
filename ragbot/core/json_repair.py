"""
Lenient JSON parsing for LLM output.

Model responses often wrap JSON in prose or code fences and contain
trailing commas, smart quotes or stray control characters. This module
extracts and repairs the JSON payload before giving up.

Dependencies: json, re (stdlib)
System role: Robust parsing of structured LLM responses
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_CONTROL = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_REPAIRS = (
    (re.compile(r",\s*}"), "}"),
    (re.compile(r",\s*]"), "]"),
    (re.compile(r",\s*,"), ","),
    (re.compile(r"\[\s*,"), "["),
    (re.compile(r"}\s*{"), "},{"),
)
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})


def extract_json_block(text: str) -> str | None:
    """Outermost ``{...}`` or ``[...]`` span of ``text``, preferring fenced blocks."""
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)

    starts = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start : end + 1]


def repair_json(text: str) -> str:
    """Apply the textual repairs: quotes, control characters and comma fixes."""
    repaired = _CONTROL.sub(" ", text.translate(_SMART_QUOTES))
    # Repeat until stable: removing one comma can expose another
    previous = None
    while previous != repaired:
        previous = repaired
        for pattern, replacement in _REPAIRS:
            repaired = pattern.sub(replacement, repaired)
    return repaired


def parse_llm_json(text: str, default: Any = None) -> Any:
    """
    Parse JSON from an LLM response.

    Args:
        text: Raw model output
        default: Value returned when no valid JSON can be recovered

    Returns:
        Any: Parsed JSON value, or ``default``
    """
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    block = extract_json_block(text)
    if block is None:
        logger.warning(f"{__name__}:parse_llm_json - No JSON object found in response")
        return default

    try:
        return json.loads(repair_json(block))
    except json.JSONDecodeError as e:
        logger.warning(f"{__name__}:parse_llm_json - Could not repair JSON: {e}")
        return default
