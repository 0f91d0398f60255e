"""
Workflow Runner

Entry points used by the host: run a workflow by id from the panel, from a
hotkey or from a document event. Loads the workflow document, seeds the
trigger-specific variables and keeps track of the runs in flight.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from ..adapters.observed import ObservedDocumentStore
from ..config.types import EngineSettings
from ..history.storage import HistoryStorage
from ..interfaces import Collaborators
from ..runtime_data.files import split_path
from ..runtime_data.state import CancellationToken, TriggerMode
from ..types import SelectionInfo
from .engine import WorkflowEngine
from .loader import WorkflowLoader, make_workflow_id, split_workflow_id
from .nodes.prompts import (
    EVENT_FILE,
    EVENT_FILE_CONTENT,
    EVENT_FILE_PATH,
    HOTKEY_ACTIVE_FILE,
    HOTKEY_CONTENT,
    HOTKEY_SELECTION,
    HOTKEY_SELECTION_INFO,
)
from .results import WorkflowRunResult

EVENT_TYPE = "__eventType__"
EVENT_OLD_PATH = "__eventOldPath__"

_CONTENT_EVENTS = {"create", "modify", "file-open"}


class WorkflowRunner:
    """
    Loads and runs workflows stored in the document store.

    Writes made by any run are reported to ``write_listeners`` so event
    triggers can ignore them.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        settings: Optional[EngineSettings] = None,
        history_storage: Optional[HistoryStorage] = None,
    ):
        """
        Initialize workflow runner.

        Args:
            collaborators: External collaborators; ``documents`` is required
            settings: Engine settings
            history_storage: Where execution records are saved
        """
        if collaborators.documents is None:
            raise ValueError("WorkflowRunner requires a document store")

        self.settings = settings or EngineSettings()
        self.logger = logging.getLogger(__name__)
        self.write_listeners: List[Callable[[str], None]] = []

        documents = ObservedDocumentStore(collaborators.documents, self._notify_write)
        self.collaborators = dataclasses.replace(collaborators, documents=documents)
        self.engine = WorkflowEngine(self.collaborators, self.settings, history_storage)
        self.loader = WorkflowLoader(documents)
        self._tokens: Set[CancellationToken] = set()

    def _notify_write(self, path: str):
        for listener in self.write_listeners:
            listener(path)

    @property
    def active_run_ids(self) -> List[str]:
        return list(self.engine.active_runs)

    def cancel(self, run_id: str) -> bool:
        """Cancel one active run."""
        return self.engine.cancel(run_id, "Workflow execution was stopped")

    def cancel_all(self) -> int:
        """Cancel every run started through this runner."""
        tokens = [token for token in self._tokens if not token.is_cancelled]
        for token in tokens:
            token.cancel("Workflow execution was stopped")
        return len(tokens)

    async def run(
        self,
        workflow_id: str,
        variables: Optional[Dict[str, Any]] = None,
        trigger_mode: TriggerMode = TriggerMode.PANEL,
        name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> WorkflowRunResult:
        """
        Run a workflow identified by ``path#name``.

        Args:
            workflow_id: Document path, optionally followed by ``#name``
            variables: Initial variables
            trigger_mode: How the run was started
            name: Workflow name, overriding the one in ``workflow_id``
            cancel_token: Token for cancelling from outside

        Returns:
            WorkflowRunResult

        Raises:
            WorkflowError: If the workflow cannot be loaded or built
        """
        path, id_name = split_workflow_id(workflow_id)
        resolved, definition = await self.loader.load(path, name or id_name)

        token = cancel_token or CancellationToken()
        self._tokens.add(token)
        self.logger.info(
            f"Running {make_workflow_id(resolved, definition.name)} ({TriggerMode(trigger_mode).value})"
        )
        try:
            return await self.engine.execute(
                definition,
                variables=variables,
                trigger_mode=trigger_mode,
                cancel_token=token,
                workflow_path=resolved,
            )
        finally:
            self._tokens.discard(token)

    async def run_from_hotkey(
        self,
        workflow_id: str,
        active_file: Optional[str] = None,
        content: Optional[str] = None,
        selection: str = "",
        selection_info: Optional[SelectionInfo] = None,
        name: Optional[str] = None,
    ) -> WorkflowRunResult:
        """
        Run a workflow bound to a hotkey.

        The active document and selection are passed to prompt nodes, which
        use them instead of asking the user.

        Args:
            workflow_id: Workflow to run
            active_file: Path of the document open in the editor
            content: Its content (read from the store when omitted)
            selection: Selected text
            selection_info: Location of the selection
        """
        if content is None and active_file:
            content = await self.collaborators.documents.read(active_file)

        variables: Dict[str, Any] = {
            HOTKEY_CONTENT: content or "",
            HOTKEY_SELECTION: selection or "",
        }
        if active_file:
            variables[HOTKEY_ACTIVE_FILE] = split_path(active_file)
        if selection_info is not None:
            variables[HOTKEY_SELECTION_INFO] = selection_info.to_variable()

        return await self.run(workflow_id, variables, TriggerMode.HOTKEY, name=name)

    async def run_from_event(self, workflow_id: str, event, name: Optional[str] = None) -> WorkflowRunResult:
        """
        Run a workflow for a document event.

        Args:
            workflow_id: Workflow to run
            event: DocumentEvent that matched the workflow's trigger
            name: Workflow name, overriding the one in ``workflow_id``
        """
        event_type = getattr(event.type, "value", event.type)
        variables: Dict[str, Any] = {
            EVENT_TYPE: event_type,
            EVENT_FILE_PATH: event.path,
            EVENT_FILE: split_path(event.path),
        }
        if event.old_path:
            variables[EVENT_OLD_PATH] = event.old_path

        if event_type in _CONTENT_EVENTS:
            content = event.content
            if content is None:
                content = await self._read_event_content(event.path)
            if content is not None:
                variables[EVENT_FILE_CONTENT] = content

        return await self.run(workflow_id, variables, TriggerMode.EVENT, name=name)

    async def _read_event_content(self, path: str) -> Optional[str]:
        try:
            return await self.collaborators.documents.read(path)
        except (OSError, UnicodeDecodeError) as e:
            self.logger.debug(f"Could not read event file {path}: {e}")
            return None
