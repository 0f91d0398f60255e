"""Branching and timing handlers: if, while and sleep."""

import asyncio
import logging

from ...runtime_data.conditions import evaluate_condition
from ..definition import NodeType
from .base import NodeResult, parse_int, register_handler

logger = logging.getLogger(__name__)


@register_handler(NodeType.IF, NodeType.WHILE, raw_params=("condition",))
async def handle_condition(params, context, collaborators, cancel) -> NodeResult:
    """
    Evaluate the node condition.

    The scheduler follows ``trueNext`` or ``falseNext`` based on ``branch``.
    Unparseable conditions are false and leave a diagnostic on the context.
    """
    condition = params.get("condition", "")
    result = evaluate_condition(condition, context.variables, context.diagnostics)
    return NodeResult(output={"condition": condition, "result": result}, branch=result)


# Registered as external so a cancel request interrupts the wait
@register_handler(NodeType.SLEEP, external=True)
async def handle_sleep(params, context, collaborators, cancel) -> NodeResult:
    duration_ms = parse_int(params.get("duration", "0"), 0)
    if duration_ms > 0:
        logger.debug(f"Sleeping {duration_ms}ms")
        await asyncio.sleep(duration_ms / 1000)
    return NodeResult(output={"duration": duration_ms})
