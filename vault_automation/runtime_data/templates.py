"""
Template engine for ``{{expr}}`` placeholders.

Supported expressions::

    {{name}}                  plain variable
    {{name.field.sub}}        dotted field access
    {{name[0]}}               list index
    {{name["key"]}}           quoted key
    {{name[idx]}}             index taken from variable ``idx``
    {{name[{{i}}]}}           nested placeholder, resolved first
    {{name:json}}             JSON-escaped text, for embedding in JSON bodies

Missing variables resolve to an empty string and leave a diagnostic behind.
Substituted text is never scanned again, so resolving an already-resolved
string changes nothing.
"""

import json
import logging
import re
from typing import Any, List, Optional, Tuple

from .values import to_text, try_parse_json

logger = logging.getLogger(__name__)

OPEN = "{{"
CLOSE = "}}"

_NAME_PATTERN = re.compile(r"[A-Za-z_$][\w$]*")
_FIELD_PATTERN = re.compile(r"[\w$-]+")
_JSON_MODIFIER = ":json"

_MISSING = object()


class _Unparseable(Exception):
    pass


def _find_close(text: str, start: int) -> int:
    """Index of the ``}}`` matching the ``{{`` at ``start``, or -1."""
    depth = 0
    i = start + len(OPEN)
    while i < len(text) - 1:
        pair = text[i : i + 2]
        if pair == OPEN:
            depth += 1
            i += 2
        elif pair == CLOSE:
            if depth == 0:
                return i
            depth -= 1
            i += 2
        else:
            i += 1
    return -1


def _parse_path(expr: str) -> Tuple[str, List[Tuple[str, str]]]:
    """
    Split an expression into its variable name and access segments.

    Each segment is ``("field", text)``, ``("index", digits)``,
    ``("key", text)`` or ``("var", name)``.
    """
    match = _NAME_PATTERN.match(expr)
    if not match:
        raise _Unparseable(expr)
    name = match.group(0)
    pos = match.end()
    segments: List[Tuple[str, str]] = []

    while pos < len(expr):
        char = expr[pos]
        if char == ".":
            field = _FIELD_PATTERN.match(expr, pos + 1)
            if not field:
                raise _Unparseable(expr)
            segments.append(("field", field.group(0)))
            pos = field.end()
        elif char == "[":
            close = expr.find("]", pos)
            if close < 0:
                raise _Unparseable(expr)
            inner = expr[pos + 1 : close].strip()
            if inner.lstrip("-").isdigit():
                segments.append(("index", inner))
            elif len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "'\"":
                segments.append(("key", inner[1:-1]))
            elif _NAME_PATTERN.fullmatch(inner):
                segments.append(("var", inner))
            else:
                raise _Unparseable(expr)
            pos = close + 1
        else:
            raise _Unparseable(expr)

    return name, segments


def _descend(value: Any, key: Any) -> Any:
    """Step into ``value`` by ``key``; strings holding JSON are parsed first."""
    if isinstance(value, str):
        value = try_parse_json(value)
    if isinstance(value, dict):
        if key in value:
            return value[key]
        return value.get(str(key), _MISSING)
    if isinstance(value, list):
        try:
            index = int(key)
        except (TypeError, ValueError):
            if key == "length":
                return len(value)
            return _MISSING
        if -len(value) <= index < len(value):
            return value[index]
    return _MISSING


def lookup(expr: str, variables: dict) -> Any:
    """
    Evaluate a placeholder expression against the scope.

    Returns:
        The raw value, or ``None`` when any part of the path is missing

    Raises:
        ValueError: If the expression is not a valid path
    """
    try:
        name, segments = _parse_path(expr.strip())
    except _Unparseable:
        raise ValueError(f"Invalid template expression: {expr}") from None

    value = variables.get(name, _MISSING)
    for kind, text in segments:
        if value is _MISSING:
            break
        if kind == "var":
            index_value = variables.get(text, _MISSING)
            if index_value is _MISSING:
                return None
            value = _descend(value, to_text(index_value))
        else:
            value = _descend(value, text)
    return None if value is _MISSING else value


def _evaluate(
    inner: str, variables: dict, diagnostics: Optional[List[str]]
) -> Tuple[bool, Any, bool]:
    """Returns (parsed, value, json_modifier)."""
    expr = inner.strip()
    as_json = False
    if expr.endswith(_JSON_MODIFIER):
        expr = expr[: -len(_JSON_MODIFIER)].rstrip()
        as_json = True

    try:
        value = lookup(expr, variables)
    except ValueError as e:
        _warn(diagnostics, str(e))
        return False, None, as_json

    if value is None:
        _warn(diagnostics, f"Unresolved variable '{expr}' replaced with empty string")
    return True, value, as_json


def _warn(diagnostics: Optional[List[str]], message: str):
    logger.debug(message)
    if diagnostics is not None and message not in diagnostics:
        diagnostics.append(message)


def _render(value: Any, as_json: bool) -> str:
    text = to_text(value)
    if as_json:
        return json.dumps(text, ensure_ascii=False)[1:-1]
    return text


def resolve_template(
    template: str, variables: dict, diagnostics: Optional[List[str]] = None
) -> str:
    """
    Replace every placeholder in ``template`` with the text of its value.

    Args:
        template: Text possibly containing ``{{...}}`` spans
        variables: Variable scope
        diagnostics: Optional list receiving resolution warnings

    Returns:
        Resolved text
    """
    if not isinstance(template, str):
        return to_text(template)

    out = []
    pos = 0
    while True:
        start = template.find(OPEN, pos)
        if start < 0:
            out.append(template[pos:])
            break
        end = _find_close(template, start)
        if end < 0:
            out.append(template[pos:])
            break

        out.append(template[pos:start])
        inner = template[start + len(OPEN) : end]
        nested = OPEN in inner
        if nested:
            inner = resolve_template(inner, variables, diagnostics)

        parsed, value, as_json = _evaluate(inner, variables, diagnostics)
        if parsed:
            out.append(_render(value, as_json))
        elif nested:
            # an inner placeholder resolved to nothing usable
            out.append("")
        else:
            out.append(template[start : end + len(CLOSE)])
        pos = end + len(CLOSE)

    return "".join(out)


def resolve_value(
    template: str, variables: dict, diagnostics: Optional[List[str]] = None
) -> Any:
    """
    Resolve a template, returning the raw value for a lone placeholder.

    ``"{{items}}"`` yields the list stored in ``items`` itself, while
    ``"n={{items}}"`` yields text.
    """
    if not isinstance(template, str):
        return template

    stripped = template.strip()
    if stripped.startswith(OPEN) and _find_close(stripped, 0) == len(stripped) - len(CLOSE):
        inner = stripped[len(OPEN) : -len(CLOSE)]
        nested = OPEN in inner
        if nested:
            inner = resolve_template(inner, variables, diagnostics)
        parsed, value, as_json = _evaluate(inner, variables, diagnostics)
        if not parsed:
            return "" if nested else template
        if value is None:
            return ""
        if as_json:
            return _render(value, True)
        return value

    return resolve_template(template, variables, diagnostics)


def has_placeholders(text: str) -> bool:
    return isinstance(text, str) and OPEN in text and CLOSE in text
