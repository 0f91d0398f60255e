"""
Runtime Data

Execution context, template resolution and condition evaluation shared by
the workflow engine and node handlers.
"""

from .state import CallFrame, CancellationToken, ExecutionContext, TriggerMode
from .templates import resolve_template, resolve_value, lookup
from .conditions import Condition, evaluate_condition, parse_condition
from .files import FileData
from .values import coerce_scalar, parse_json_text, parse_number, to_text

__all__ = [
    "CallFrame",
    "CancellationToken",
    "ExecutionContext",
    "TriggerMode",
    "resolve_template",
    "resolve_value",
    "lookup",
    "Condition",
    "evaluate_condition",
    "parse_condition",
    "FileData",
    "coerce_scalar",
    "parse_json_text",
    "parse_number",
    "to_text",
]
