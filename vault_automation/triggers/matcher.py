"""
Trigger Matcher

Consumes document-store events from a queue and starts a run for every
binding that matches. ``modify`` events are debounced per path so that a
burst of writes (autosave) results in one run with the last content.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Set

from ..config.types import EngineSettings
from ..workflows.results import WorkflowRunResult
from ..workflows.runner import WorkflowRunner
from .bindings import DocumentEvent, EventType, TriggerBinding


class TriggerMatcher:
    """
    Maps document-store events to workflow runs.

    Example:
        matcher = TriggerMatcher(runner, [TriggerBinding.from_workflow_id(
            "workflows/tag.md#tagger", ["create", "modify"], "journal/*.md")])
        queue = asyncio.Queue()
        matcher.start(queue)
        await queue.put(DocumentEvent(EventType.MODIFY, "journal/2024-01-01.md"))
    """

    def __init__(
        self,
        runner: WorkflowRunner,
        bindings: Optional[Iterable[TriggerBinding]] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.runner = runner
        self.bindings: List[TriggerBinding] = list(bindings or [])
        self.settings = settings or runner.settings
        self.logger = logging.getLogger(__name__)

        self._pending_modify: Dict[str, DocumentEvent] = {}
        self._debounce_tasks: Dict[str, asyncio.Task] = {}
        self._dispatch_tasks: Set[asyncio.Task] = set()
        self._guarded: Dict[str, float] = {}
        self._consumer: Optional[asyncio.Task] = None

        runner.write_listeners.append(self.guard)

    def set_bindings(self, bindings: Iterable[TriggerBinding]):
        """Replace all bindings. Pending debounced events use the new set."""
        self.bindings = list(bindings)

    def add_binding(self, binding: TriggerBinding):
        self.bindings.append(binding)

    def remove_binding(self, workflow_id: str) -> int:
        """Remove bindings of a workflow; returns how many were removed."""
        before = len(self.bindings)
        self.bindings = [b for b in self.bindings if b.workflow_id != workflow_id]
        return before - len(self.bindings)

    def matching_bindings(self, event: DocumentEvent) -> List[TriggerBinding]:
        return [binding for binding in self.bindings if binding.matches(event)]

    # Loop guard

    def guard(self, path: str, seconds: Optional[float] = None):
        """Ignore events on ``path`` for the next ``seconds``."""
        window = self.settings.loop_guard_seconds if seconds is None else seconds
        self._guarded[path] = time.monotonic() + window

    def is_guarded(self, path: str) -> bool:
        expires = self._guarded.get(path)
        if expires is None:
            return False
        if time.monotonic() >= expires:
            del self._guarded[path]
            return False
        return True

    # Event handling

    async def handle_event(self, event: DocumentEvent):
        """
        Process one event.

        Modify events are deferred by the debounce window; all other events
        are dispatched right away in a background task.
        """
        if self.is_guarded(event.path):
            self.logger.debug(f"Ignoring {event.type.value} on {event.path}: written by a workflow")
            return

        if event.type == EventType.MODIFY:
            self._debounce(event)
            return

        self._spawn(self.dispatch(event))

    def _debounce(self, event: DocumentEvent):
        self._pending_modify[event.path] = event
        existing = self._debounce_tasks.get(event.path)
        if existing is not None and not existing.done():
            existing.cancel()
        self._debounce_tasks[event.path] = asyncio.ensure_future(
            self._fire_after_quiet(event.path)
        )

    async def _fire_after_quiet(self, path: str):
        await asyncio.sleep(self.settings.modify_debounce_seconds)
        self._debounce_tasks.pop(path, None)
        event = self._pending_modify.pop(path, None)
        if event is not None:
            self._spawn(self.dispatch(event))

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)
        return task

    async def dispatch(self, event: DocumentEvent) -> List[WorkflowRunResult]:
        """
        Start one run per matching binding and wait for all of them.

        Failures are logged and do not affect the other runs.

        Returns:
            Results of the runs that finished (failed launches are omitted)
        """
        matching = self.matching_bindings(event)
        if not matching:
            return []

        self.logger.info(
            f"{event.type.value} on {event.path} matched {len(matching)} workflow(s)"
        )
        outcomes = await asyncio.gather(
            *(self._run_binding(binding, event) for binding in matching),
            return_exceptions=True,
        )

        results: List[WorkflowRunResult] = []
        for binding, outcome in zip(matching, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.warning(
                    f"Workflow ({binding.workflow_id}) triggered by {event.type.value} "
                    f"failed: {outcome}"
                )
                continue
            if not outcome.success:
                self.logger.warning(
                    f"Workflow ({binding.workflow_id}) triggered by {event.type.value} "
                    f"ended {outcome.status.value}: {outcome.error}"
                )
            results.append(outcome)
        return results

    async def _run_binding(self, binding: TriggerBinding, event: DocumentEvent) -> WorkflowRunResult:
        self.guard(event.path)
        self.guard(binding.workflow_path)
        return await self.runner.run_from_event(
            binding.workflow_path, event, name=binding.workflow_name
        )

    # Queue consumption

    async def consume(self, queue: "asyncio.Queue[DocumentEvent]"):
        """Process events from ``queue`` until cancelled."""
        while True:
            event = await queue.get()
            try:
                await self.handle_event(event)
            finally:
                queue.task_done()

    def start(self, queue: "asyncio.Queue[DocumentEvent]") -> asyncio.Task:
        """Start consuming ``queue`` in the background."""
        if self._consumer is not None and not self._consumer.done():
            raise RuntimeError("Trigger matcher is already running")
        self._consumer = asyncio.ensure_future(self.consume(queue))
        return self._consumer

    async def stop(self):
        """Stop consuming, drop pending debounced events and wait for running dispatches."""
        tasks = list(self._debounce_tasks.values())
        if self._consumer is not None:
            tasks.append(self._consumer)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumer = None
        self._debounce_tasks.clear()
        self._pending_modify.clear()

        if self._dispatch_tasks:
            await asyncio.gather(*list(self._dispatch_tasks), return_exceptions=True)

    async def drain(self):
        """Wait until all dispatched runs (not pending debounces) have finished."""
        while self._dispatch_tasks:
            await asyncio.gather(*list(self._dispatch_tasks), return_exceptions=True)
