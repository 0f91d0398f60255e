"""Run states and results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..history.models import ExecutionRecord, ExecutionStatus


class RunStatus(str, Enum):
    """
    Lifecycle of a run.

    READY -> RUNNING, RUNNING <-> SUSPENDED while awaiting an external
    collaborator, then one of COMPLETED, FAILED or CANCELLED.
    """

    READY = "ready"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)

    def to_execution_status(self) -> ExecutionStatus:
        if self == RunStatus.COMPLETED:
            return ExecutionStatus.COMPLETED
        if self == RunStatus.FAILED:
            return ExecutionStatus.ERROR
        if self == RunStatus.CANCELLED:
            return ExecutionStatus.CANCELLED
        return ExecutionStatus.RUNNING


@dataclass
class WorkflowRunResult:
    """Result of running a workflow."""

    run_id: str
    workflow_name: Optional[str]
    status: RunStatus
    variables: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_node_id: Optional[str] = None
    steps_executed: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    record: Optional[ExecutionRecord] = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "status": self.status.value,
            "variables": self.variables,
            "error": self.error,
            "error_node_id": self.error_node_id,
            "steps_executed": self.steps_executed,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }
