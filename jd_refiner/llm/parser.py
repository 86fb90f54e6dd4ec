"""Structured output parsing for LLM responses."""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Error parsing LLM output."""

    def __init__(self, message: str, raw_content: str, errors: Optional[list[Any]] = None):
        super().__init__(message)
        self.raw_content = raw_content
        self.errors = errors or []


CODE_BLOCK_PATTERNS = [
    re.compile(r"```json\s*([\s\S]*?)\s*```"),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
]


def repair_truncated_json(text: str) -> Optional[str]:
    """
    Attempt to repair JSON that was cut off by the output token limit.

    Drops a dangling partial string, key or trailing comma, then closes any
    brackets still open, innermost first. Returns None when the text is not
    truncated or cannot be repaired.
    """
    text = (text or "").strip()
    if not text:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    cut = 0  # end of the last complete structural token

    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
            cut = i + 1
        elif char in "}]":
            if not stack:
                return None
            stack.pop()
            cut = i + 1
        elif char == ",":
            cut = i

    if not stack:
        return None

    candidate = text.rstrip()
    if in_string or candidate.endswith(":"):
        candidate = text[:cut]
    candidate = candidate.rstrip().rstrip(",").rstrip()
    repaired = candidate + "".join(reversed(stack))

    try:
        json.loads(repaired)
    except json.JSONDecodeError:
        return None

    logger.info(f"Repaired truncated JSON (closed {len(stack)} brackets)")
    return repaired


def extract_json(text: str) -> Optional[str]:
    """
    Extract JSON from text that may contain markdown code blocks or other content.

    Handles:
    - ```json ... ``` blocks
    - ``` ... ``` blocks
    - JSON objects embedded in prose
    - Truncated JSON (attempts repair)
    """
    for pattern in CODE_BLOCK_PATTERNS:
        match = pattern.search(text)
        if match:
            content = match.group(1).strip()
            if content.startswith(("{", "[")):
                return content

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidate = text[start : end + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[-1]
    if stripped.startswith(("{", "[")):
        return repair_truncated_json(stripped)

    return None


def parse_json(text: str, strict: bool = True) -> Any:
    """
    Parse JSON from LLM output.

    Args:
        text: Raw LLM output text
        strict: If True, raise error on parse failure

    Returns:
        Parsed JSON value, or None when parsing fails and strict is False

    Raises:
        ParseError: If JSON cannot be parsed
    """
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        pass

    json_str = extract_json(text)
    if json_str:
        try:
            return json.loads(json_str)
        except json.JSONDecodeError as e:
            if strict:
                raise ParseError(
                    f"Invalid JSON structure: {e}",
                    raw_content=text,
                    errors=[str(e)],
                )
            return None

    if strict:
        raise ParseError("No valid JSON found in response", raw_content=text)
    return None
