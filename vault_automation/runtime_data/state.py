"""
Execution Context

Holds the variable scope, call stack and cancellation state of one workflow run.
"""

import asyncio
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .templates import resolve_template, resolve_value


class TriggerMode(str, Enum):
    """How a run was started. Decides prompt defaults."""

    PANEL = "panel"
    HOTKEY = "hotkey"
    EVENT = "event"


@dataclass
class CallFrame:
    """One level of sub-workflow nesting."""

    node_id: str
    workflow_path: Optional[str] = None
    workflow_name: Optional[str] = None
    return_node_id: Optional[str] = None
    caller_variables: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_id": self.node_id,
            "workflow_path": self.workflow_path,
            "workflow_name": self.workflow_name,
            "return_node_id": self.return_node_id,
        }


def _consume_result(task: asyncio.Future):
    if not task.cancelled():
        task.exception()


class CancellationToken:
    """
    Cooperative cancellation signal shared by a run and its sub-workflows.

    The scheduler checks it before each node, and handlers that await an
    external collaborator wrap the call in ``wait_cancellable`` so that a
    cancel request interrupts the wait.
    """

    def __init__(self):
        self._cancel_event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None):
        """Request cancellation."""
        if not self._cancel_event.is_set():
            self.reason = reason
            self._cancel_event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def wait(self):
        """Block until cancellation is requested."""
        await self._cancel_event.wait()

    async def wait_cancellable(self, coro):
        """
        Wait for a coroutine while checking for cancellation.

        Args:
            coro: Coroutine to wait for

        Returns:
            Result of the coroutine

        Raises:
            asyncio.CancelledError: If cancellation is requested first
        """
        cancel_task = asyncio.ensure_future(self._cancel_event.wait())
        main_task = asyncio.ensure_future(coro)

        try:
            done, pending = await asyncio.wait(
                [main_task, cancel_task], return_when=asyncio.FIRST_COMPLETED
            )

            for task in pending:
                task.cancel()

            if main_task in done:
                return main_task.result()

            main_task.cancel()
            # Let the interrupted call unwind and collect whatever it raised
            await asyncio.gather(main_task, return_exceptions=True)
            raise asyncio.CancelledError(self.reason or "Workflow execution was stopped")

        except BaseException:
            if not main_task.done():
                main_task.cancel()
                main_task.add_done_callback(_consume_result)
            cancel_task.cancel()
            raise


class ExecutionContext:
    """
    Variable scope and bookkeeping for one run.

    Variables are mutated in place by node handlers. A sub-workflow always
    gets a new context, seeded only from its input mapping.
    """

    def __init__(
        self,
        variables: Optional[Dict[str, Any]] = None,
        trigger_mode: TriggerMode = TriggerMode.PANEL,
        cancel_token: Optional[CancellationToken] = None,
        call_stack: Optional[List[CallFrame]] = None,
        run_id: Optional[str] = None,
        workflow_path: Optional[str] = None,
        workflow_name: Optional[str] = None,
    ):
        """
        Initialize execution context.

        Args:
            variables: Initial variable scope (copied)
            trigger_mode: How the run was started
            cancel_token: Shared cancellation token, created if omitted
            call_stack: Frames of the enclosing sub-workflow invocations
            run_id: Id of the execution record this run writes to
            workflow_path: Document that holds the workflow
            workflow_name: Name of the workflow block
        """
        self.variables: Dict[str, Any] = dict(variables or {})
        self.trigger_mode = TriggerMode(trigger_mode)
        self.cancel_token = cancel_token or CancellationToken()
        self.call_stack: List[CallFrame] = list(call_stack or [])
        self.run_id = run_id
        self.workflow_path = workflow_path
        self.workflow_name = workflow_name
        self.current_node_id: Optional[str] = None
        self.current_successor: Optional[str] = None
        self.diagnostics: List[str] = []
        # History recorder of the run, attached by the engine
        self.recorder = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.is_cancelled

    @property
    def depth(self) -> int:
        return len(self.call_stack)

    def get(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    def set(self, name: str, value: Any):
        self.variables[name] = value

    def has(self, name: str) -> bool:
        return name in self.variables

    def resolve(self, template: Optional[str]) -> str:
        """Resolve a template to text, collecting diagnostics."""
        if not template:
            return ""
        return resolve_template(template, self.variables, self.diagnostics)

    def resolve_value(self, template: Optional[str]) -> Any:
        """Resolve a template, keeping structure when it is a single placeholder."""
        if not template:
            return ""
        return resolve_value(template, self.variables, self.diagnostics)

    def drain_diagnostics(self) -> List[str]:
        """Return and clear diagnostics gathered since the last call."""
        collected, self.diagnostics = self.diagnostics, []
        return collected

    def child(
        self,
        variables: Dict[str, Any],
        frame: CallFrame,
        workflow_path: Optional[str] = None,
        workflow_name: Optional[str] = None,
    ) -> "ExecutionContext":
        """
        Create the isolated context of a sub-workflow run.

        Only ``variables`` are visible to the child. Cancellation, trigger mode
        and the execution record are shared with this context.
        """
        return ExecutionContext(
            variables=variables,
            trigger_mode=self.trigger_mode,
            cancel_token=self.cancel_token,
            call_stack=self.call_stack + [frame],
            run_id=self.run_id,
            workflow_path=workflow_path,
            workflow_name=workflow_name,
        )

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the variable scope."""
        return deepcopy(self.variables)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert context to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "variables": self.snapshot(),
            "current_node_id": self.current_node_id,
            "call_stack": [frame.to_dict() for frame in self.call_stack],
            "trigger_mode": self.trigger_mode.value,
            "cancelled": self.cancelled,
            "run_id": self.run_id,
            "workflow_path": self.workflow_path,
            "workflow_name": self.workflow_name,
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ExecutionContext(run_id={self.run_id}, "
            f"workflow={self.workflow_name}, "
            f"variables={len(self.variables)}, depth={self.depth})"
        )
