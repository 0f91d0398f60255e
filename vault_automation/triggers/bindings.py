"""Trigger bindings and document-store events."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from ..workflows.loader import make_workflow_id, split_workflow_id
from .glob import match_file_pattern


class EventType(str, Enum):
    """Document-store events a workflow can be bound to."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    RENAME = "rename"
    FILE_OPEN = "file-open"

    @property
    def carries_content(self) -> bool:
        return self in (EventType.CREATE, EventType.MODIFY, EventType.FILE_OPEN)


@dataclass(frozen=True)
class DocumentEvent:
    """
    One event delivered by the document store.

    Attributes:
        type: What happened
        path: Path of the affected document (the new path for renames)
        content: Document content, when the producer already has it
        old_path: Previous path, for renames
    """

    type: EventType
    path: str
    content: Optional[str] = None
    old_path: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "type", EventType(self.type))


@dataclass(frozen=True)
class TriggerBinding:
    """Binds a set of events, optionally filtered by a glob, to a workflow."""

    workflow_path: str
    workflow_name: Optional[str] = None
    events: FrozenSet[EventType] = field(default_factory=frozenset)
    file_pattern: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "events", frozenset(EventType(e) for e in self.events))

    @property
    def workflow_id(self) -> str:
        return make_workflow_id(self.workflow_path, self.workflow_name)

    def matches(self, event: DocumentEvent) -> bool:
        if event.type not in self.events:
            return False
        if self.file_pattern and not match_file_pattern(self.file_pattern, event.path):
            return False
        return True

    @classmethod
    def from_workflow_id(
        cls,
        workflow_id: str,
        events: Iterable[Any],
        file_pattern: Optional[str] = None,
    ) -> "TriggerBinding":
        path, name = split_workflow_id(workflow_id)
        return cls(path, name, frozenset(events), file_pattern or None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriggerBinding":
        """Create from ``{workflowId, events, filePattern}``."""
        return cls.from_workflow_id(
            data["workflowId"], data.get("events") or [], data.get("filePattern")
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "workflowId": self.workflow_id,
            "events": sorted(event.value for event in self.events),
        }
        if self.file_pattern:
            result["filePattern"] = self.file_pattern
        return result
