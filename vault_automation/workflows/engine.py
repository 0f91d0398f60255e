"""
Workflow Engine

Interpreter loop that walks a workflow graph one node at a time. A run only
yields control while awaiting a handler that calls an external collaborator;
cancellation is checked before every node and interrupts such waits.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from ..config.types import EngineSettings
from ..errors import (
    HandlerError,
    LoopLimitExceeded,
    RunCancelled,
    WorkflowError,
)
from ..history.models import ExecutionRecord, ExecutionStatus, StepStatus
from ..history.recorder import HistoryRecorder, OpenStep
from ..history.storage import HistoryStorage
from ..interfaces import Collaborators
from ..runtime_data.state import CancellationToken, ExecutionContext, TriggerMode
from .definition import NodeType, WorkflowDefinition
from .graph import GraphNode, WorkflowGraph, build_graph
from .loader import WorkflowLoader
from .nodes import NodeHandlerRegistry, NodeResult, registry as default_registry
from .results import RunStatus, WorkflowRunResult
from .subworkflow import SubworkflowInvoker

STOPPED_MESSAGE = "Workflow execution was stopped"


class WorkflowRun:
    """Live state of one run (or sub-workflow run)."""

    def __init__(self, graph: WorkflowGraph, context: ExecutionContext):
        self.graph = graph
        self.context = context
        self.status = RunStatus.READY
        self.steps_executed = 0
        self.while_iterations: Dict[str, int] = {}
        self.started_at: Optional[datetime] = None

    def transition(self, status: RunStatus):
        if self.status.is_terminal:
            raise RuntimeError(f"Run already finished with status {self.status.value}")
        self.status = status

    def __repr__(self) -> str:
        return (
            f"WorkflowRun(workflow={self.graph.name}, status={self.status.value}, "
            f"node={self.context.current_node_id})"
        )


class WorkflowEngine:
    """
    Executes workflow graphs.

    Example:
        engine = WorkflowEngine(Collaborators(documents=store, commands=llm))
        result = await engine.execute(definition, variables={"topic": "Foo"})
    """

    def __init__(
        self,
        collaborators: Optional[Collaborators] = None,
        settings: Optional[EngineSettings] = None,
        history_storage: Optional[HistoryStorage] = None,
        handler_registry: Optional[NodeHandlerRegistry] = None,
    ):
        """
        Initialize workflow engine.

        Args:
            collaborators: External collaborators used by node handlers
            settings: Engine settings (defaults when omitted)
            history_storage: Where finished execution records are saved
            handler_registry: Handler table (the global registry when omitted)

        Raises:
            RuntimeError: If a node type has no handler
        """
        self.settings = settings or EngineSettings()
        self.history_storage = history_storage
        self.registry = handler_registry if handler_registry is not None else default_registry
        self.logger = logging.getLogger(__name__)

        missing = self.registry.missing()
        if missing:
            raise RuntimeError(
                "No handler registered for node types: "
                + ", ".join(node_type.value for node_type in missing)
            )

        collaborators = collaborators or Collaborators()
        loader = WorkflowLoader(collaborators.documents) if collaborators.documents else None
        self.invoker = SubworkflowInvoker(self, loader)
        self.collaborators = dataclasses.replace(collaborators, subworkflows=self.invoker)
        self.active_runs: Dict[str, WorkflowRun] = {}

    def build(self, workflow: Union[WorkflowDefinition, WorkflowGraph]) -> WorkflowGraph:
        """Build (and thereby validate) the graph of a definition."""
        if isinstance(workflow, WorkflowGraph):
            return workflow
        return build_graph(workflow.nodes, workflow.name)

    async def execute(
        self,
        workflow: Union[WorkflowDefinition, WorkflowGraph],
        variables: Optional[Dict[str, Any]] = None,
        trigger_mode: TriggerMode = TriggerMode.PANEL,
        cancel_token: Optional[CancellationToken] = None,
        workflow_path: str = "",
        record_history: Optional[bool] = None,
    ) -> WorkflowRunResult:
        """
        Execute a workflow.

        Run-time failures do not raise: they are reported through the result
        status and the execution record.

        Args:
            workflow: Workflow definition or prebuilt graph
            variables: Initial variable scope
            trigger_mode: How the run was started
            cancel_token: Token the caller can use to cancel the run
            workflow_path: Document holding the workflow, for history
            record_history: Save the record to history storage (setting default)

        Returns:
            WorkflowRunResult with execution outcome

        Raises:
            WorkflowError: If the definition cannot be built into a graph
        """
        graph = self.build(workflow)

        record = ExecutionRecord(workflow_path=workflow_path, workflow_name=graph.name)
        recorder = HistoryRecorder(record, self.settings.binary_truncate_threshold)
        context = ExecutionContext(
            variables=variables,
            trigger_mode=trigger_mode,
            cancel_token=cancel_token,
            run_id=record.id,
            workflow_path=workflow_path,
            workflow_name=graph.name,
        )
        context.recorder = recorder

        self.logger.info(
            f"Starting workflow '{graph.name or workflow_path}' (execution: {record.id})"
        )

        try:
            result = await self.run(graph, context)
        except asyncio.CancelledError:
            recorder.finish_run(
                ExecutionStatus.CANCELLED, context.snapshot(), error=STOPPED_MESSAGE
            )
            self._save_record(record, record_history)
            raise

        recorder.finish_run(
            result.status.to_execution_status(),
            context.snapshot(),
            error=result.error,
            error_node_id=result.error_node_id,
        )
        self._save_record(record, record_history)
        result.record = record

        self.logger.info(
            f"Workflow '{graph.name or workflow_path}' finished with status: "
            f"{result.status.value} ({result.steps_executed} steps)"
        )
        return result

    def _save_record(self, record: ExecutionRecord, record_history: Optional[bool]):
        enabled = self.settings.history_enabled if record_history is None else record_history
        if not enabled or self.history_storage is None:
            return
        try:
            self.history_storage.save_record(record)
        except OSError as e:
            self.logger.error(f"Failed to save execution record {record.id}: {e}")

    def cancel(self, run_id: str, reason: Optional[str] = None) -> bool:
        """Request cancellation of an active run."""
        run = self.active_runs.get(run_id)
        if run is None:
            return False
        run.context.cancel_token.cancel(reason)
        return True

    async def run(self, graph: WorkflowGraph, context: ExecutionContext) -> WorkflowRunResult:
        """
        Drive ``graph`` to a terminal state in ``context``.

        Used for top-level runs and for sub-workflows, which share the
        cancellation token and execution record of their caller.
        """
        run = WorkflowRun(graph, context)
        run.started_at = datetime.now()
        run.transition(RunStatus.RUNNING)
        is_top_level = context.depth == 0
        if is_top_level and context.run_id:
            self.active_runs[context.run_id] = run

        error: Optional[str] = None
        error_node_id: Optional[str] = None
        current: Optional[str] = graph.start_id

        try:
            while current is not None:
                if context.cancelled:
                    raise RunCancelled(context.cancel_token.reason or STOPPED_MESSAGE)

                run.steps_executed += 1
                node = graph.get(current)
                current = await self._step(run, node)

            run.transition(RunStatus.COMPLETED)

        except RunCancelled as e:
            self.logger.info(f"Workflow '{graph.name}' cancelled: {e}")
            run.transition(RunStatus.CANCELLED)
            error = str(e)
            error_node_id = context.current_node_id

        except HandlerError as e:
            self.logger.warning(f"Workflow '{graph.name}' failed at node {e.node_id}: {e}")
            run.transition(RunStatus.FAILED)
            error = str(e)
            error_node_id = e.node_id

        except WorkflowError as e:
            self.logger.warning(f"Workflow '{graph.name}' failed: {e}")
            run.transition(RunStatus.FAILED)
            error = str(e)
            error_node_id = context.current_node_id

        except asyncio.CancelledError:
            run.status = RunStatus.CANCELLED
            raise

        finally:
            if is_top_level and context.run_id:
                self.active_runs.pop(context.run_id, None)

        return WorkflowRunResult(
            run_id=context.run_id or "",
            workflow_name=graph.name,
            status=run.status,
            variables=context.variables,
            error=error,
            error_node_id=error_node_id,
            steps_executed=run.steps_executed,
            started_at=run.started_at,
            completed_at=datetime.now(),
        )

    def _resolve_params(self, node: GraphNode, raw_params, context: ExecutionContext) -> Dict[str, Any]:
        return {
            key: value if key in raw_params else context.resolve(value)
            for key, value in node.properties.items()
        }

    async def _step(self, run: WorkflowRun, node: GraphNode) -> Optional[str]:
        """Execute one node and return the id of the next one (None ends the run)."""
        context = run.context
        spec = self.registry.get(node.type)

        context.current_node_id = node.id
        context.current_successor = node.successor
        context.drain_diagnostics()

        params = self._resolve_params(node, spec.raw_params, context)
        step: Optional[OpenStep] = None
        if context.recorder is not None:
            step = context.recorder.begin_step(node.id, node.type.value, params)

        if run.steps_executed > self.settings.max_total_steps:
            limit_error = LoopLimitExceeded(
                f"Workflow exceeded maximum steps ({self.settings.max_total_steps})"
            )
            self._finish(step, context, error=str(limit_error))
            raise limit_error

        self.logger.debug(f"Executing node {node.id} ({node.type.value})")

        try:
            handler = spec.handler(params, context, self.collaborators, context.cancel_token)
            if spec.external:
                run.transition(RunStatus.SUSPENDED)
                try:
                    result: NodeResult = await context.cancel_token.wait_cancellable(handler)
                finally:
                    if run.status == RunStatus.SUSPENDED:
                        run.status = RunStatus.RUNNING
            else:
                result = await handler

        except asyncio.CancelledError:
            self._finish(step, context, error=STOPPED_MESSAGE, status=StepStatus.SKIPPED)
            if not context.cancelled:
                raise
            raise RunCancelled(context.cancel_token.reason or STOPPED_MESSAGE) from None

        except RunCancelled as e:
            self._finish(step, context, error=str(e), status=StepStatus.SKIPPED)
            raise

        except HandlerError as e:
            e.node_id = e.node_id or node.id
            e.node_type = e.node_type or node.type.value
            self._finish(step, context, error=str(e))
            raise

        except WorkflowError as e:
            self._finish(step, context, error=str(e))
            raise HandlerError(str(e), node.id, node.type.value) from e

        except Exception as e:
            self.logger.error(f"Node {node.id} ({node.type.value}) raised: {e}", exc_info=True)
            self._finish(step, context, error=f"{type(e).__name__}: {e}")
            raise HandlerError(str(e), node.id, node.type.value) from e

        try:
            next_id = self._next_node(run, node, result)
        except LoopLimitExceeded as e:
            self._finish(step, context, error=str(e))
            raise

        self._finish(step, context, output=result.output)
        return next_id

    def _finish(
        self,
        step: Optional[OpenStep],
        context: ExecutionContext,
        output: Any = None,
        error: Optional[str] = None,
        status: Optional[StepStatus] = None,
    ):
        diagnostics = context.drain_diagnostics()
        for message in diagnostics:
            self.logger.warning(f"Node {context.current_node_id}: {message}")
        if step is not None:
            step.finish(output=output, error=error, status=status, diagnostics=diagnostics)

    def _next_node(self, run: WorkflowRun, node: GraphNode, result: NodeResult) -> Optional[str]:
        if node.explicit_next:
            return node.successor

        if node.type.is_branch:
            taken = bool(result.branch)
            if node.type == NodeType.WHILE:
                if taken:
                    count = run.while_iterations.get(node.id, 0) + 1
                    if count > self.settings.max_while_iterations:
                        raise LoopLimitExceeded(
                            f"While loop exceeded maximum iterations "
                            f"({self.settings.max_while_iterations})"
                        )
                    run.while_iterations[node.id] = count
                else:
                    run.while_iterations.pop(node.id, None)
            return node.true_target if taken else node.false_target

        return node.successor
