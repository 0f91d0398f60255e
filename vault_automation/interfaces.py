"""Interfaces for the collaborators node handlers delegate to.

The engine never talks to storage, models, networks or people directly.
Each I/O node calls exactly one of these interfaces and maps the result
into the variables named by its parameters.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .errors import HandlerError
from .runtime_data.files import FileData
from .types import (
    CommandResult,
    DialogResult,
    DialogSpec,
    HttpResponse,
    ListFilters,
    ListResult,
    SearchMatch,
    SelectionInfo,
    ToolCallResult,
    WriteMode,
    WriteOutcome,
)


class DocumentStore(ABC):
    """Storage of vault documents addressed by relative path."""

    @abstractmethod
    async def read(self, path: str) -> str:
        """Read a text document.

        Raises:
            FileNotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    async def read_bytes(self, path: str) -> bytes:
        """Read a document as raw bytes."""
        pass

    @abstractmethod
    async def write(self, path: str, content: str, mode: WriteMode = WriteMode.OVERWRITE) -> WriteOutcome:
        """Write a text document.

        Args:
            path: Document path
            content: New content
            mode: Overwrite, append (joined with a newline) or create only if absent

        Returns:
            WRITTEN, or SKIPPED when mode is CREATE and the document exists
        """
        pass

    @abstractmethod
    async def write_bytes(self, path: str, data: bytes) -> WriteOutcome:
        """Write a binary document, replacing any existing one."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def rename(self, old_path: str, new_path: str) -> None:
        pass

    @abstractmethod
    async def search(self, query: str, search_content: bool = False, limit: int = 10) -> List[SearchMatch]:
        """Find documents by name, or by content when ``search_content`` is set."""
        pass

    @abstractmethod
    async def list(self, folder: str, filters: Optional[ListFilters] = None) -> ListResult:
        """List markdown documents in a folder with filtering and sorting."""
        pass

    @abstractmethod
    async def list_folders(self, folder: str = "") -> List[str]:
        """List folders below ``folder``, sorted."""
        pass


class CommandProvider(ABC):
    """Language-model command runner."""

    @abstractmethod
    async def run(
        self,
        prompt: str,
        model: Optional[str] = None,
        rag_setting: Optional[str] = None,
        attachments: Optional[List[FileData]] = None,
        tools: Optional[Dict[str, Any]] = None,
    ) -> CommandResult:
        """Run a prompt and return the model output.

        Args:
            prompt: Fully resolved prompt text
            model: Optional model override
            rag_setting: Retrieval setting name, ``__websearch__`` or None
            attachments: Files to attach
            tools: Extra tool options (vault tools mode, MCP server names)

        Returns:
            Text and/or generated images
        """
        pass


class HttpGateway(ABC):
    """Outbound HTTP."""

    @abstractmethod
    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Union[str, bytes, Dict[str, Any], None] = None,
        content_type: str = "json",
    ) -> HttpResponse:
        """Perform a request.

        ``body`` is a dict of fields for ``form-data``, bytes for ``binary``
        and text otherwise. Transport failures raise; HTTP error statuses
        are returned.
        """
        pass


class ToolGateway(ABC):
    """Remote tool servers (MCP)."""

    @abstractmethod
    async def call_tool(
        self,
        endpoint: str,
        tool_name: str,
        args: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> ToolCallResult:
        pass


class PromptProvider(ABC):
    """Interactive prompts. Waits are human paced and never time out."""

    @abstractmethod
    async def ask(self, spec: DialogSpec) -> Optional[DialogResult]:
        """Show a dialog. Returns None when the user dismisses it."""
        pass

    @abstractmethod
    async def pick_file(
        self,
        default_path: Optional[str] = None,
        extensions: Optional[List[str]] = None,
        create: bool = False,
    ) -> Optional[str]:
        """Let the user pick an existing file or name a new one."""
        pass

    @abstractmethod
    async def pick_selection(self) -> Optional[SelectionInfo]:
        """Let the user select text in a document."""
        pass

    @abstractmethod
    async def confirm_write(self, path: str, content: str, mode: WriteMode) -> bool:
        """Ask whether a document write may proceed."""
        pass

    @abstractmethod
    async def open_document(self, path: str) -> None:
        pass


class RagSyncProvider(ABC):
    """Retrieval index kept in sync with documents."""

    @abstractmethod
    async def sync(self, path: Optional[str], old_path: Optional[str], setting: str) -> Dict[str, Any]:
        """Upload, rename or delete a document in a retrieval store.

        Returns:
            Provider details such as ``fileId``
        """
        pass


class HostCommandRunner(ABC):
    """Commands of the hosting editor."""

    @abstractmethod
    async def execute(self, command_id: str, path: Optional[str] = None) -> bool:
        pass


@dataclass
class Collaborators:
    """Bundle of collaborators handed to every node handler."""

    documents: Optional[DocumentStore] = None
    commands: Optional[CommandProvider] = None
    http: Optional[HttpGateway] = None
    tools: Optional[ToolGateway] = None
    prompts: Optional[PromptProvider] = None
    rag: Optional[RagSyncProvider] = None
    host: Optional[HostCommandRunner] = None
    subworkflows: Optional[Any] = None
    """Sub-workflow invoker, attached by the engine."""

    def require(self, name: str) -> Any:
        """Return a collaborator or raise if it is not configured."""
        value = getattr(self, name)
        if value is None:
            raise HandlerError(f"No '{name}' collaborator configured")
        return value
