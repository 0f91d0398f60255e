"""
Condition evaluator for ``if`` and ``while`` nodes.

A condition is ``<left> <op> <right>`` where both operands may contain
placeholders. Operators are tried in the order ``==, !=, <=, >=, <, >,
contains``; the first one that occurs exactly once outside placeholders and
quotes splits the expression.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from ..errors import ConditionParseError
from .templates import OPEN, CLOSE, _find_close, resolve_template
from .values import parse_number, to_text

logger = logging.getLogger(__name__)

OPERATORS = ["==", "!=", "<=", ">=", "<", ">", "contains"]


@dataclass(frozen=True)
class Condition:
    """A parsed condition."""

    left: str
    operator: str
    right: str

    def __str__(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


def _top_level_positions(expr: str, operator: str) -> List[int]:
    """Positions of ``operator`` outside placeholders and quoted strings."""
    positions = []
    i = 0
    quote: Optional[str] = None
    while i < len(expr):
        char = expr[i]
        if quote:
            if char == quote:
                quote = None
            i += 1
            continue
        if expr.startswith(OPEN, i):
            close = _find_close(expr, i)
            if close < 0:
                break
            i = close + len(CLOSE)
            continue
        if char in "\"'":
            quote = char
            i += 1
            continue
        if expr.startswith(operator, i):
            if operator == "contains":
                before = expr[i - 1] if i > 0 else " "
                after_index = i + len(operator)
                after = expr[after_index] if after_index < len(expr) else " "
                if before.isspace() and after.isspace():
                    positions.append(i)
            else:
                positions.append(i)
            i += len(operator)
            continue
        i += 1
    return positions


def parse_condition(expr: str) -> Condition:
    """
    Split a condition into operands and operator.

    Raises:
        ConditionParseError: If no operator splits the expression in two
    """
    if not expr or not expr.strip():
        raise ConditionParseError("Empty condition")

    for operator in OPERATORS:
        positions = _top_level_positions(expr, operator)
        if len(positions) == 1:
            pos = positions[0]
            return Condition(
                left=expr[:pos].strip(),
                operator=operator,
                right=expr[pos + len(operator) :].strip(),
            )

    raise ConditionParseError(f"Invalid condition format: {expr}")


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def _contains(left: str, right: str) -> bool:
    try:
        items = json.loads(left)
    except ValueError:
        items = None
    if isinstance(items, list):
        return any(to_text(item) == right for item in items)
    return right in left


def compare(left: str, operator: str, right: str) -> bool:
    """Compare resolved operands, numerically when both are numbers."""
    if operator == "contains":
        return _contains(left, right)

    left_number = parse_number(left)
    right_number = parse_number(right)
    if left_number is not None and right_number is not None:
        a: Any = float(left_number)
        b: Any = float(right_number)
    else:
        a, b = left, right

    if operator == "==":
        return a == b
    if operator == "!=":
        return a != b
    if operator == "<":
        return a < b
    if operator == ">":
        return a > b
    if operator == "<=":
        return a <= b
    if operator == ">=":
        return a >= b
    raise ConditionParseError(f"Unsupported operator: {operator}")


def evaluate_condition(
    expr: str, variables: dict, diagnostics: Optional[List[str]] = None
) -> bool:
    """
    Evaluate a condition against the scope.

    Malformed conditions never raise: they evaluate to ``False`` and a
    message is appended to ``diagnostics``.

    Args:
        expr: Condition text, e.g. ``{{counter}} < 3``
        variables: Variable scope
        diagnostics: Optional list receiving warnings

    Returns:
        Result of the comparison
    """
    try:
        condition = parse_condition(expr)
    except ConditionParseError as e:
        logger.warning(f"Condition treated as false: {e}")
        if diagnostics is not None:
            diagnostics.append(f"Condition treated as false: {e}")
        return False

    left = _unquote(resolve_template(condition.left, variables, diagnostics))
    right = _unquote(resolve_template(condition.right, variables, diagnostics))
    return compare(left, condition.operator, right)
