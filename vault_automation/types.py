"""
Types exchanged between node handlers and their collaborators.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class WriteMode(str, Enum):
    """How a document write treats existing content."""

    OVERWRITE = "overwrite"
    APPEND = "append"
    CREATE = "create"


class WriteOutcome(str, Enum):
    """Result of a possibly confirmation-gated write."""

    WRITTEN = "written"
    SKIPPED = "skipped"
    DECLINED = "declined"


class NoteEntry(BaseModel):
    """A document as returned by listings."""

    name: str
    path: str
    created: Optional[float] = None
    """Creation time in epoch milliseconds."""
    modified: Optional[float] = None
    """Modification time in epoch milliseconds."""
    tags: List[str] = Field(default_factory=list)


class SearchMatch(BaseModel):
    """A search hit."""

    name: str
    path: str
    matched_content: Optional[str] = None


class ListFilters(BaseModel):
    """Filters for document listings. Applied by the document store."""

    recursive: bool = False
    created_within_ms: Optional[int] = None
    modified_within_ms: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    tag_match: Literal["any", "all"] = "any"
    sort_by: Optional[Literal["created", "modified", "name"]] = None
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = 50


class ListResult(BaseModel):
    """A page of a document listing."""

    notes: List[NoteEntry] = Field(default_factory=list)
    total_count: int = 0

    @property
    def has_more(self) -> bool:
        return self.total_count > len(self.notes)


class CommandResult(BaseModel):
    """Output of a language-model command."""

    text: str = ""
    images: List[Dict[str, Any]] = Field(default_factory=list)
    """Generated images as file descriptors."""
    model: Optional[str] = None

    model_config = ConfigDict(extra="allow", protected_namespaces=())


class HttpResponse(BaseModel):
    """Response returned by an HTTP gateway."""

    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ToolCallResult(BaseModel):
    """Result of a remote tool call."""

    content: List[Dict[str, Any]] = Field(default_factory=list)
    is_error: bool = False
    structured_content: Optional[Any] = None
    ui: Optional[Dict[str, Any]] = None
    """Optional UI resource returned with the result."""

    model_config = ConfigDict(extra="allow")

    @property
    def text(self) -> str:
        return "\n".join(
            item.get("text", "") for item in self.content if item.get("type") == "text"
        )


class DialogSpec(BaseModel):
    """What a dialog asks the user."""

    title: str = "Dialog"
    message: str = ""
    options: List[str] = Field(default_factory=list)
    multi_select: bool = False
    markdown: bool = False
    button1: str = "OK"
    button2: Optional[str] = None
    input_title: Optional[str] = None
    multiline: bool = False
    defaults: Dict[str, Any] = Field(default_factory=dict)


class DialogResult(BaseModel):
    """The user's answer to a dialog."""

    button: str
    selected: List[str] = Field(default_factory=list)
    input: Optional[str] = None


class SelectionInfo(BaseModel):
    """A text selection inside a document."""

    file_path: str
    text: str = ""
    start_line: int = 0
    end_line: int = 0
    start: int = 0
    end: int = 0

    def to_variable(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "start": self.start,
            "end": self.end,
        }
