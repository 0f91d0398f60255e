"""
Vault Automation

Executes workflows embedded in markdown documents: typed node lists with
branching, loops and sub-workflows, run against a document store and a set
of external collaborators, triggered manually, by hotkey or by document
events, with every executed node recorded in an execution history.
"""

from .config import EngineSettings, env
from .errors import (
    ConditionParseError,
    DuplicateNodeIdError,
    HandlerError,
    InvalidEdgeError,
    LoopLimitExceeded,
    RunCancelled,
    SubworkflowFailure,
    UnknownNodeTypeError,
    WorkflowError,
    WorkflowParseError,
)
from .interfaces import Collaborators
from .runtime_data import CancellationToken, ExecutionContext, TriggerMode
from .workflows import (
    NodeType,
    RunStatus,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowRunner,
    WorkflowRunResult,
    build_graph,
    parse_workflow,
)
from .history import ExecutionRecord, FileSystemHistoryStorage, InMemoryHistoryStorage
from .triggers import DocumentEvent, EventType, TriggerBinding, TriggerMatcher

__version__ = "0.1.0"

__all__ = [
    "EngineSettings",
    "env",
    "ConditionParseError",
    "DuplicateNodeIdError",
    "HandlerError",
    "InvalidEdgeError",
    "LoopLimitExceeded",
    "RunCancelled",
    "SubworkflowFailure",
    "UnknownNodeTypeError",
    "WorkflowError",
    "WorkflowParseError",
    "Collaborators",
    "CancellationToken",
    "ExecutionContext",
    "TriggerMode",
    "NodeType",
    "RunStatus",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowRunner",
    "WorkflowRunResult",
    "build_graph",
    "parse_workflow",
    "ExecutionRecord",
    "FileSystemHistoryStorage",
    "InMemoryHistoryStorage",
    "DocumentEvent",
    "EventType",
    "TriggerBinding",
    "TriggerMatcher",
]
