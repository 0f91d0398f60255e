"""
Workflow Definition

Parse and represent workflow definitions embedded in markdown documents as
fenced ``workflow`` code blocks containing YAML.
"""

import re
import yaml
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import WorkflowError, WorkflowParseError
from ..runtime_data.values import to_text

END = "end"

WORKFLOW_BLOCK_PATTERN = re.compile(
    r"^```workflow[^\n]*\r?\n([\s\S]*?)\r?\n```[ \t]*$", re.MULTILINE
)

RESERVED_KEYS = {"id", "type", "next", "trueNext", "falseNext"}


class NodeType(str, Enum):
    """Every node type the engine can execute."""

    VARIABLE = "variable"
    SET = "set"
    IF = "if"
    WHILE = "while"
    SLEEP = "sleep"
    COMMAND = "command"
    HTTP = "http"
    MCP = "mcp"
    JSON = "json"
    NOTE = "note"
    NOTE_READ = "note-read"
    NOTE_SEARCH = "note-search"
    NOTE_LIST = "note-list"
    FOLDER_LIST = "folder-list"
    OPEN = "open"
    FILE_EXPLORER = "file-explorer"
    FILE_SAVE = "file-save"
    PROMPT_FILE = "prompt-file"
    PROMPT_SELECTION = "prompt-selection"
    DIALOG = "dialog"
    WORKFLOW = "workflow"
    RAG_SYNC = "rag-sync"
    OBSIDIAN_COMMAND = "obsidian-command"

    @property
    def is_branch(self) -> bool:
        return self in (NodeType.IF, NodeType.WHILE)


def normalize_property(value: Any) -> Optional[str]:
    """Convert a YAML value to the string form node handlers receive."""
    if value is None:
        return None
    return to_text(value)


@dataclass
class NodeDefinition:
    """A node as declared in a workflow block."""

    id: str
    type: str
    properties: Dict[str, str] = field(default_factory=dict)
    next: Optional[str] = None
    true_next: Optional[str] = None
    false_next: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "NodeDefinition":
        """
        Create from a YAML mapping.

        Args:
            data: Node mapping
            index: Position in the node list, used for the default id

        Returns:
            NodeDefinition
        """
        if not isinstance(data, dict):
            raise WorkflowParseError(f"Node {index + 1} must be a mapping")
        if not data.get("type"):
            raise WorkflowParseError(f"Node {index + 1} is missing 'type'")

        properties = {}
        for key, value in data.items():
            if key in RESERVED_KEYS:
                continue
            text = normalize_property(value)
            if text:
                properties[key] = text

        return cls(
            id=str(data.get("id") or f"node-{index + 1}"),
            type=str(data["type"]),
            properties=properties,
            next=normalize_property(data.get("next")) or None,
            true_next=normalize_property(data.get("trueNext")) or None,
            false_next=normalize_property(data.get("falseNext")) or None,
        )

    def get(self, key: str, default: str = "") -> str:
        return self.properties.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the YAML mapping form."""
        result: Dict[str, Any] = {"id": self.id, "type": self.type}
        result.update(self.properties)
        if self.next:
            result["next"] = self.next
        if self.true_next:
            result["trueNext"] = self.true_next
        if self.false_next:
            result["falseNext"] = self.false_next
        return result


@dataclass
class WorkflowDefinition:
    """
    A named, ordered list of nodes.

    Example block::

        ```workflow
        name: summarize
        nodes:
          - id: ask
            type: dialog
            message: Topic?
            inputTitle: Topic
            saveTo: topic
          - id: run
            type: command
            prompt: "Summarize {{topic.input}}"
            saveTo: result
        ```
    """

    name: Optional[str] = None
    nodes: List[NodeDefinition] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "WorkflowDefinition":
        """
        Parse a workflow from YAML text.

        Raises:
            WorkflowParseError: If the YAML is invalid or has no nodes
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise WorkflowParseError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise WorkflowParseError("Workflow block must be a YAML mapping")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDefinition":
        """Create from a mapping, accepting an optional ``workflow:`` wrapper."""
        body = data.get("workflow") if isinstance(data.get("workflow"), dict) else data
        name = data.get("name") or body.get("name")
        raw_nodes = body.get("nodes") or data.get("nodes")

        if not raw_nodes or not isinstance(raw_nodes, list):
            raise WorkflowParseError("Workflow has no nodes")

        return cls(
            name=str(name) if name else None,
            nodes=[NodeDefinition.from_dict(node, i) for i, node in enumerate(raw_nodes)],
            options=dict(body.get("options") or {}),
        )

    def get_node(self, node_id: str) -> Optional[NodeDefinition]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def validate(self) -> List[str]:
        """
        Validate the definition without raising.

        Returns:
            List of error messages (empty if valid)
        """
        from .graph import build_graph

        try:
            build_graph(self.nodes)
        except WorkflowError as e:
            return [str(e)]
        return []

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.name:
            result["name"] = self.name
        if self.options:
            result["options"] = dict(self.options)
        result["nodes"] = [node.to_dict() for node in self.nodes]
        return result

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    def to_markdown_block(self) -> str:
        return f"```workflow\n{self.to_yaml().rstrip()}\n```"

    def __repr__(self) -> str:
        """String representation."""
        return f"WorkflowDefinition(name={self.name!r}, nodes={len(self.nodes)})"


@dataclass
class WorkflowBlock:
    """Location of one workflow block inside a document."""

    index: int
    yaml_text: str
    start: int
    end: int
    name: Optional[str] = None


def find_workflow_blocks(content: str) -> List[WorkflowBlock]:
    """Find every fenced workflow block in a document."""
    blocks = []
    for i, match in enumerate(WORKFLOW_BLOCK_PATTERN.finditer(content)):
        yaml_text = match.group(1)
        name = None
        try:
            data = yaml.safe_load(yaml_text)
        except yaml.YAMLError:
            data = None
        if isinstance(data, dict):
            wrapped = data.get("workflow")
            name = data.get("name") or (wrapped.get("name") if isinstance(wrapped, dict) else None)
        blocks.append(
            WorkflowBlock(
                index=i,
                yaml_text=yaml_text,
                start=match.start(),
                end=match.end(),
                name=str(name) if name else None,
            )
        )
    return blocks


def list_workflow_options(content: str) -> List[Dict[str, Any]]:
    """Describe the blocks of a document as ``{name, index}`` entries."""
    return [{"name": block.name, "index": block.index} for block in find_workflow_blocks(content)]


def parse_workflow(
    content: str, name: Optional[str] = None, index: Optional[int] = None
) -> WorkflowDefinition:
    """
    Parse one workflow out of a markdown document.

    Args:
        content: Document text
        name: Select the block with this name
        index: Select the block at this position when no name is given

    Returns:
        WorkflowDefinition

    Raises:
        WorkflowParseError: If no block matches the selection
    """
    blocks = find_workflow_blocks(content)
    if not blocks:
        raise WorkflowParseError("No workflow code block found")

    if name:
        for block in blocks:
            if block.name == name:
                return WorkflowDefinition.from_yaml(block.yaml_text)
        raise WorkflowParseError(f'Workflow "{name}" not found')

    if index is not None:
        if 0 <= index < len(blocks):
            return WorkflowDefinition.from_yaml(blocks[index].yaml_text)
        raise WorkflowParseError(f"Workflow index {index} out of range")

    if len(blocks) > 1:
        raise WorkflowParseError("Multiple workflows found. Specify a workflow name.")

    return WorkflowDefinition.from_yaml(blocks[0].yaml_text)


def replace_workflow_block(content: str, definition: WorkflowDefinition, index: int = 0) -> str:
    """Write a definition back into the document, replacing block ``index``."""
    blocks = find_workflow_blocks(content)
    if not 0 <= index < len(blocks):
        raise WorkflowParseError(f"Workflow index {index} out of range")
    block = blocks[index]
    return content[: block.start] + definition.to_markdown_block() + content[block.end :]
