"""
Exception hierarchy for workflow parsing, graph building and execution.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all workflow related errors."""


class WorkflowParseError(WorkflowError):
    """Raised when a workflow block cannot be found or decoded."""


class DuplicateNodeIdError(WorkflowError):
    """Raised when two nodes of one definition share an id."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate node id: {node_id}")


class UnknownNodeTypeError(WorkflowError):
    """Raised at build time for a node whose type has no handler."""

    def __init__(self, node_id: str, node_type: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(f"Unknown node type '{node_type}' for node {node_id}")


class InvalidEdgeError(WorkflowError):
    """Raised when an edge targets a node id that does not exist."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"Invalid edge reference: {source} -> {target}")


class ConditionParseError(WorkflowError):
    """Raised when a condition expression has no recognizable operator."""


class LoopLimitExceeded(WorkflowError):
    """Raised when a run exceeds its iteration safety bound."""


class HandlerError(WorkflowError):
    """
    A node handler failed. Fatal to the run.

    Attributes:
        node_id: Id of the failing node, filled in by the scheduler if unknown
        node_type: Type of the failing node
    """

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.node_id = node_id
        self.node_type = node_type


class SubworkflowFailure(HandlerError):
    """A sub-workflow run ended in failure."""


class RunCancelled(Exception):
    """The run was cancelled by its caller. Not a workflow error."""

