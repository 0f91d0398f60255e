"""Handlers that only touch the variable scope: variable, set and json."""

import math
import re
from typing import Any

from ...errors import HandlerError
from ...runtime_data.values import coerce_scalar, normalize_number, parse_json_text
from ..definition import NodeType
from .base import NodeResult, register_handler, require

ARITHMETIC_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?)\s*([+\-*/%])\s*(-?\d+(?:\.\d+)?)$")


def evaluate_expression(value: Any) -> Any:
    """
    Evaluate a resolved ``set`` value.

    ``a op b`` with numeric operands is computed (division or modulo by zero
    yields 0), numeric text becomes a number, anything else is kept.
    """
    if not isinstance(value, str):
        return value

    match = ARITHMETIC_PATTERN.match(value.strip())
    if match:
        left, operator, right = float(match.group(1)), match.group(2), float(match.group(3))
        if operator == "+":
            result = left + right
        elif operator == "-":
            result = left - right
        elif operator == "*":
            result = left * right
        elif operator == "/":
            result = left / right if right != 0 else 0
        else:
            result = math.fmod(left, right) if right != 0 else 0
        return normalize_number(result)

    return coerce_scalar(value)


@register_handler(NodeType.VARIABLE, raw_params=("value",))
async def handle_variable(params, context, collaborators, cancel) -> NodeResult:
    name = require(params, "name", "variable")
    value = context.resolve_value(params.get("value", ""))
    if isinstance(value, str):
        value = coerce_scalar(value)
    context.set(name, value)
    return NodeResult(output=value)


@register_handler(NodeType.SET, raw_params=("value",))
async def handle_set(params, context, collaborators, cancel) -> NodeResult:
    name = require(params, "name", "set")
    value = evaluate_expression(context.resolve_value(params.get("value", "")))
    context.set(name, value)
    return NodeResult(output=value)


@register_handler(NodeType.JSON)
async def handle_json(params, context, collaborators, cancel) -> NodeResult:
    source = require(params, "source", "json")
    save_to = require(params, "saveTo", "json")

    if not context.has(source):
        raise HandlerError(f"Variable '{source}' not found")

    raw = context.get(source)
    if isinstance(raw, (dict, list)):
        parsed = raw
    else:
        try:
            parsed = parse_json_text(str(raw))
        except ValueError as e:
            raise HandlerError(f"Failed to parse JSON from '{source}': {e}") from e

    context.set(save_to, parsed)
    return NodeResult(output=parsed)
