"""Conversions between workflow variable values and their text form."""

import json
import re
from typing import Any, Optional, Union

JSON_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
NUMBER_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?$")

Number = Union[int, float]


def to_text(value: Any) -> str:
    """
    Render a variable value the way templates substitute it.

    Strings are returned unchanged, booleans become ``true``/``false``,
    integral floats lose their fractional part and structured values are
    rendered as compact JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def parse_number(text: Any) -> Optional[Number]:
    """Parse a number from text, or return None."""
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        return text
    if not isinstance(text, str):
        return None
    candidate = text.strip()
    if not NUMBER_PATTERN.match(candidate):
        return None
    if "." in candidate or "e" in candidate or "E" in candidate:
        return float(candidate)
    return int(candidate)


def normalize_number(value: Number) -> Number:
    """Collapse integral floats to int."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def coerce_scalar(text: str) -> Any:
    """
    Store numeric text as a number when it round-trips exactly.

    ``"3"`` becomes ``3`` and ``"2.5"`` becomes ``2.5``; ``"007"`` or
    ``"3.0"`` stay strings because their text form would change.
    """
    number = parse_number(text)
    if number is not None and to_text(number) == text:
        return number
    return text


def extract_json_text(text: str) -> str:
    """Return the body of a fenced json code block, or the text itself."""
    match = JSON_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_text(text: str) -> Any:
    """
    Parse JSON from text, accepting a fenced code block around it.

    Raises:
        ValueError: If the text is not valid JSON
    """
    return json.loads(extract_json_text(text))


def try_parse_json(value: Any) -> Any:
    """Structured view of a value: strings are parsed as JSON when possible."""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped or stripped[0] not in "{[`":
        return None
    try:
        return parse_json_text(stripped)
    except ValueError:
        return None
