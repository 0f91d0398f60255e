"""
History Recorder

Append-only writer for the steps of an execution record. The scheduler opens
an entry right before a handler runs and finalizes it right after; finalized
entries are frozen and never touched again.
"""

import logging
import yaml
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .models import ExecutionHistoryEntry, ExecutionRecord, ExecutionStatus, StepStatus

logger = logging.getLogger(__name__)

_BASE64_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
)


def truncate_binary(value: Any, threshold: int = 1000) -> Any:
    """Replace long base64 payloads with ``[Binary data: N chars]``."""
    if isinstance(value, str):
        if len(value) > threshold and set(value[:threshold]) <= _BASE64_CHARS:
            return f"[Binary data: {len(value)} chars]"
        return value
    if isinstance(value, dict):
        if value.get("contentType") == "binary" and isinstance(value.get("data"), str):
            if len(value["data"]) > threshold:
                value = dict(value, data=f"[Binary data: {len(value['data'])} chars]")
        return {key: truncate_binary(item, threshold) for key, item in value.items()}
    if isinstance(value, list):
        return [truncate_binary(item, threshold) for item in value]
    return value


class OpenStep:
    """A step that has started but not finished."""

    def __init__(
        self,
        recorder: "HistoryRecorder",
        node_id: str,
        node_type: str,
        resolved_input: Dict[str, Any],
    ):
        self.recorder = recorder
        self.node_id = node_id
        self.node_type = node_type
        self.input = resolved_input
        self.started_at = datetime.now()
        self.entry: Optional[ExecutionHistoryEntry] = None

    def finish(
        self,
        output: Any = None,
        error: Optional[str] = None,
        status: Optional[StepStatus] = None,
        diagnostics: Iterable[str] = (),
    ) -> ExecutionHistoryEntry:
        """Finalize and append the entry. A step can only be finished once."""
        if self.entry is not None:
            raise RuntimeError(f"Step {self.node_id} already finalized")
        if status is None:
            status = StepStatus.ERROR if error else StepStatus.SUCCESS
        self.entry = self.recorder._append(self, output, error, status, tuple(diagnostics))
        return self.entry


class HistoryRecorder:
    """
    Writes steps into an ExecutionRecord.

    Sub-workflow runs use a child recorder that writes to the same record and
    prefixes node ids with the invoking node id (``parent/child``).
    """

    def __init__(
        self,
        record: ExecutionRecord,
        truncate_threshold: int = 1000,
        prefix: str = "",
    ):
        self.record = record
        self.truncate_threshold = truncate_threshold
        self.prefix = prefix

    @property
    def run_id(self) -> str:
        return self.record.id

    def child(self, node_id: str) -> "HistoryRecorder":
        return HistoryRecorder(
            self.record, self.truncate_threshold, prefix=f"{self.prefix}{node_id}/"
        )

    def begin_step(self, node_id: str, node_type: str, resolved_input: Dict[str, Any]) -> OpenStep:
        return OpenStep(
            self,
            f"{self.prefix}{node_id}",
            node_type,
            truncate_binary(dict(resolved_input), self.truncate_threshold),
        )

    def _append(
        self,
        step: OpenStep,
        output: Any,
        error: Optional[str],
        status: StepStatus,
        diagnostics: tuple,
    ) -> ExecutionHistoryEntry:
        entry = ExecutionHistoryEntry(
            run_id=self.record.id,
            step_index=len(self.record.steps),
            node_id=step.node_id,
            node_type=step.node_type,
            status=status,
            started_at=step.started_at,
            finished_at=datetime.now(),
            input=step.input,
            output=truncate_binary(output, self.truncate_threshold),
            error=error,
            diagnostics=diagnostics,
        )
        self.record.steps.append(entry)
        return entry

    def finish_run(
        self,
        status: ExecutionStatus,
        variables: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        error_node_id: Optional[str] = None,
    ) -> ExecutionRecord:
        """Close the record with its final status."""
        self.record.status = status
        self.record.ended_at = datetime.now()
        self.record.error = error
        self.record.error_node_id = error_node_id
        if variables is not None:
            self.record.variables_snapshot = truncate_binary(variables, self.truncate_threshold)
        logger.debug(
            f"Execution {self.record.id} finished with status {status.value} "
            f"after {len(self.record.steps)} steps"
        )
        return self.record


def summarize_for_repair(record: ExecutionRecord, node_ids: Optional[List[str]] = None) -> str:
    """
    Render selected steps as YAML for a workflow-authoring assistant.

    Args:
        record: Execution record
        node_ids: Only include steps of these nodes (all steps when None)

    Returns:
        YAML text describing the run and its steps
    """
    steps = [
        step
        for step in record.steps
        if node_ids is None or step.node_id in node_ids
    ]
    summary = {
        "workflow": record.workflow_name or record.workflow_path,
        "status": record.status.value,
        "error_node_id": record.error_node_id,
        "error": record.error,
        "steps": [
            {
                key: value
                for key, value in {
                    "node_id": step.node_id,
                    "node_type": step.node_type,
                    "status": step.status.value,
                    "input": step.input,
                    "output": step.output,
                    "error": step.error,
                    "diagnostics": list(step.diagnostics) or None,
                }.items()
                if value not in (None, {}, [])
            }
            for step in steps
        ],
    }
    return yaml.safe_dump(summary, sort_keys=False, allow_unicode=True)
