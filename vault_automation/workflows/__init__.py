"""
Workflow definitions, graph building and execution.
"""

from .definition import (
    END,
    NodeDefinition,
    NodeType,
    WorkflowBlock,
    WorkflowDefinition,
    find_workflow_blocks,
    list_workflow_options,
    parse_workflow,
    replace_workflow_block,
)
from .graph import GraphNode, WorkflowGraph, build_graph
from .results import RunStatus, WorkflowRunResult
from .loader import WorkflowLoader, make_workflow_id, split_workflow_id
from .subworkflow import SubworkflowInvoker
from .nodes import NodeHandlerRegistry, NodeResult, register_handler, registry
from .engine import WorkflowEngine
from .runner import WorkflowRunner

__all__ = [
    "END",
    "NodeDefinition",
    "NodeType",
    "WorkflowBlock",
    "WorkflowDefinition",
    "find_workflow_blocks",
    "list_workflow_options",
    "parse_workflow",
    "replace_workflow_block",
    "GraphNode",
    "WorkflowGraph",
    "build_graph",
    "RunStatus",
    "WorkflowRunResult",
    "WorkflowLoader",
    "make_workflow_id",
    "split_workflow_id",
    "SubworkflowInvoker",
    "NodeHandlerRegistry",
    "NodeResult",
    "register_handler",
    "registry",
    "WorkflowEngine",
    "WorkflowRunner",
]
