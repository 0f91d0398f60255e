"""Data models for execution history"""

import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ExecutionStatus(str, Enum):
    """Status of a recorded execution"""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class StepStatus(str, Enum):
    """Status of one recorded step"""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


def new_execution_id() -> str:
    return f"exec-{int(time.time() * 1000)}-{random.randrange(36 ** 7):07x}"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class ExecutionHistoryEntry:
    """
    One executed node. Frozen once finalized.

    Attributes:
        step_index: Position of the step within the run, starting at 0
        input: Parameters after template resolution
        output: Handler result, None on error
        error: Error message when the handler failed
        diagnostics: Non-fatal template and condition warnings
    """

    run_id: str
    step_index: int
    node_id: str
    node_type: str
    status: StepStatus
    started_at: datetime
    finished_at: datetime
    input: Dict[str, Any] = field(default_factory=dict)
    output: Any = None
    error: Optional[str] = None
    diagnostics: Tuple[str, ...] = ()

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "run_id": self.run_id,
            "step_index": self.step_index,
            "node_id": self.node_id,
            "node_type": self.node_type,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "diagnostics": list(self.diagnostics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionHistoryEntry":
        """Create from dictionary"""
        return cls(
            run_id=data["run_id"],
            step_index=data["step_index"],
            node_id=data["node_id"],
            node_type=data["node_type"],
            status=StepStatus(data["status"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(data["finished_at"]),
            input=data.get("input") or {},
            output=data.get("output"),
            error=data.get("error"),
            diagnostics=tuple(data.get("diagnostics") or ()),
        )


@dataclass
class ExecutionRecord:
    """A complete run of one workflow"""

    workflow_path: str
    workflow_name: Optional[str] = None
    id: str = field(default_factory=new_execution_id)
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    steps: List[ExecutionHistoryEntry] = field(default_factory=list)
    error_node_id: Optional[str] = None
    error: Optional[str] = None
    variables_snapshot: Optional[Dict[str, Any]] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds() * 1000

    def find_steps(self, node_id: str) -> List[ExecutionHistoryEntry]:
        return [step for step in self.steps if step.node_id == node_id]

    @property
    def failed_step(self) -> Optional[ExecutionHistoryEntry]:
        for step in reversed(self.steps):
            if step.status == StepStatus.ERROR:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "workflow_path": self.workflow_path,
            "workflow_name": self.workflow_name,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "status": self.status.value,
            "steps": [step.to_dict() for step in self.steps],
            "error_node_id": self.error_node_id,
            "error": self.error,
            "variables_snapshot": self.variables_snapshot,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionRecord":
        """Create from dictionary"""
        return cls(
            id=data["id"],
            workflow_path=data["workflow_path"],
            workflow_name=data.get("workflow_name"),
            started_at=datetime.fromisoformat(data["started_at"]),
            ended_at=_parse_time(data.get("ended_at")),
            status=ExecutionStatus(data.get("status", ExecutionStatus.RUNNING.value)),
            steps=[ExecutionHistoryEntry.from_dict(step) for step in data.get("steps", [])],
            error_node_id=data.get("error_node_id"),
            error=data.get("error"),
            variables_snapshot=data.get("variables_snapshot"),
        )


def format_duration(ms: Optional[float]) -> str:
    """Human readable duration: ``850ms``, ``2.4s``, ``3m 12s``."""
    if ms is None:
        return "-"
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60000)
    seconds = int((ms % 60000) // 1000)
    return f"{minutes}m {seconds}s"
