"""
Sub-workflow Invoker

Runs another workflow with an isolated scope. The child sees only the
variables produced by the input mapping; its results come back through the
output mapping, or are all copied under a prefix when there is none.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import RunCancelled, SubworkflowFailure, WorkflowError
from ..runtime_data.state import CallFrame, ExecutionContext
from ..runtime_data.values import try_parse_json
from .graph import build_graph
from .loader import WorkflowLoader, make_workflow_id
from .results import RunStatus

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


def _pairs(text: str):
    for pair in text.split(","):
        key, eq, value = pair.partition("=")
        if eq and key.strip():
            yield key.strip(), value.strip()


def evaluate_input_mapping(raw: Optional[str], caller: ExecutionContext) -> Dict[str, Any]:
    """
    Build the child scope from the caller scope.

    ``raw`` is either a JSON object ``{"childVar": "{{parentVar}}"}`` whose
    values are resolved against the caller, or ``child=parent`` pairs where
    ``parent`` names a caller variable (or is taken literally otherwise).
    """
    if not raw:
        return {}

    mapping = try_parse_json(raw)
    if not isinstance(mapping, dict):
        mapping = try_parse_json(caller.resolve(raw))

    variables: Dict[str, Any] = {}
    if isinstance(mapping, dict):
        for key, value in mapping.items():
            resolved = caller.resolve_value(value) if isinstance(value, str) else value
            variables[caller.resolve(key)] = resolved
        return variables

    for key, value in _pairs(caller.resolve(raw)):
        variables[key] = caller.get(value, value)
    return variables


def evaluate_output_mapping(raw: Optional[str], caller: ExecutionContext) -> Optional[Dict[str, str]]:
    """Parse ``{"parentVar": "childVar"}`` or ``parent=child`` pairs. None when absent."""
    if not raw:
        return None
    text = caller.resolve(raw)
    mapping = try_parse_json(text)
    if isinstance(mapping, dict):
        return {str(k): str(v) for k, v in mapping.items() if isinstance(v, str)}
    return {parent: child for parent, child in _pairs(text) if child}


class SubworkflowInvoker:
    """Drives the engine recursively for ``workflow`` nodes."""

    def __init__(self, engine: "WorkflowEngine", loader: Optional[WorkflowLoader] = None):
        self.engine = engine
        self.loader = loader
        self.logger = logging.getLogger(__name__)

    async def invoke(
        self,
        path: str,
        name: Optional[str],
        input_mapping: Optional[str],
        output_mapping: Optional[str],
        prefix: str,
        caller: ExecutionContext,
    ) -> Dict[str, Any]:
        """
        Run a sub-workflow to completion and merge its results into the caller.

        Returns:
            The variables written into the caller scope

        Raises:
            SubworkflowFailure: If the child cannot be loaded or does not complete
            RunCancelled: If the shared cancellation token fires during the child run
        """
        label = make_workflow_id(path, name)
        max_depth = self.engine.settings.max_subworkflow_depth
        if caller.depth >= max_depth:
            raise SubworkflowFailure(
                f"Sub-workflow nesting exceeded maximum depth ({max_depth}) at {label}"
            )
        if self.loader is None:
            raise SubworkflowFailure("Sub-workflow execution not available: no document store")

        try:
            resolved_path, definition = await self.loader.load(path, name)
            graph = build_graph(definition.nodes, definition.name)
        except (WorkflowError, OSError) as e:
            raise SubworkflowFailure(f"Cannot load sub-workflow {label}: {e}") from e

        frame = CallFrame(
            node_id=caller.current_node_id or "",
            workflow_path=resolved_path,
            workflow_name=definition.name,
            return_node_id=caller.current_successor,
            caller_variables=caller.variables,
        )
        child = caller.child(
            evaluate_input_mapping(input_mapping, caller),
            frame,
            workflow_path=resolved_path,
            workflow_name=definition.name,
        )
        if caller.recorder is not None:
            child.recorder = caller.recorder.child(frame.node_id)

        self.logger.info(f"Invoking sub-workflow {label} (depth {child.depth})")
        result = await self.engine.run(graph, child)

        if result.status == RunStatus.CANCELLED:
            raise RunCancelled(f"Sub-workflow {label} was cancelled")
        if result.status != RunStatus.COMPLETED:
            where = f" at node {result.error_node_id}" if result.error_node_id else ""
            raise SubworkflowFailure(f"Sub-workflow {label} failed{where}: {result.error}")

        merged: Dict[str, Any] = {}
        mapping = evaluate_output_mapping(output_mapping, caller)
        if mapping is not None:
            for parent_var, child_var in mapping.items():
                if child_var in result.variables:
                    merged[parent_var] = result.variables[child_var]
        else:
            for key, value in result.variables.items():
                merged[f"{prefix}{key}"] = value

        caller.variables.update(merged)
        return merged
