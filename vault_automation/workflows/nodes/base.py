"""Handler registry and helpers shared by node handlers."""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional

from ...errors import HandlerError, UnknownNodeTypeError
from ...interfaces import Collaborators
from ...runtime_data.state import CancellationToken, ExecutionContext
from ...runtime_data.values import parse_json_text, try_parse_json
from ..definition import NodeType

logger = logging.getLogger(__name__)


@dataclass
class NodeResult:
    """
    What a handler hands back to the scheduler.

    Attributes:
        output: Value recorded in the history entry
        branch: Condition outcome for ``if``/``while`` nodes
    """

    output: Any = None
    branch: Optional[bool] = None


Handler = Callable[
    [Dict[str, Any], ExecutionContext, Collaborators, CancellationToken],
    Awaitable[NodeResult],
]


@dataclass(frozen=True)
class HandlerSpec:
    """
    A registered handler.

    Attributes:
        raw_params: Parameters passed through without template resolution
        external: Whether the handler awaits an external collaborator
    """

    node_type: NodeType
    handler: Handler
    raw_params: FrozenSet[str] = field(default_factory=frozenset)
    external: bool = False


class NodeHandlerRegistry:
    """Dispatch table from node type to handler."""

    def __init__(self):
        """Initialize handler registry."""
        self._handlers: Dict[NodeType, HandlerSpec] = {}

    def register(
        self,
        node_type: NodeType,
        handler: Handler,
        raw_params: Iterable[str] = (),
        external: bool = False,
    ) -> Handler:
        """
        Register a handler.

        Args:
            node_type: Node type handled
            handler: Async handler function
            raw_params: Parameters the handler resolves itself
            external: Whether the handler calls an external collaborator

        Raises:
            TypeError: If the handler is not a coroutine function
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler for {node_type.value} must be async")
        node_type = NodeType(node_type)
        if node_type in self._handlers:
            logger.debug(f"Replacing handler for node type {node_type.value}")
        self._handlers[node_type] = HandlerSpec(
            node_type=node_type,
            handler=handler,
            raw_params=frozenset(raw_params),
            external=external,
        )
        return handler

    def get(self, node_type: NodeType) -> HandlerSpec:
        """
        Look up the handler for a node type.

        Raises:
            UnknownNodeTypeError: If no handler is registered
        """
        try:
            return self._handlers[NodeType(node_type)]
        except (KeyError, ValueError):
            raise UnknownNodeTypeError("?", str(node_type)) from None

    def missing(self) -> List[NodeType]:
        """Node types without a handler."""
        return [node_type for node_type in NodeType if node_type not in self._handlers]

    def __contains__(self, node_type) -> bool:
        return node_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


# Global handler registry
registry = NodeHandlerRegistry()


def register_handler(
    *node_types: NodeType, raw_params: Iterable[str] = (), external: bool = False
):
    """Decorator to register a handler for one or more node types.

    Example:
        @register_handler(NodeType.NOTE_READ, external=True)
        async def handle_note_read(params, context, collaborators, cancel):
            ...
    """

    def _register(func):
        for node_type in node_types:
            registry.register(node_type, func, raw_params=raw_params, external=external)
        return func

    return _register


def require(params: Dict[str, Any], key: str, node_type: str) -> str:
    """Return a non-empty parameter or fail the node."""
    value = params.get(key)
    if value is None or value == "":
        raise HandlerError(f"{node_type} node missing '{key}' property")
    return value


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def parse_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_json_param(value: Any, what: str) -> Any:
    """Parse a JSON parameter; structured values pass through."""
    if not isinstance(value, str):
        return value
    try:
        return parse_json_text(value)
    except ValueError as e:
        raise HandlerError(f"Invalid JSON in {what}: {e}") from e


def split_list(value: Any) -> List[str]:
    """Comma separated text (or a JSON list) as a list of trimmed items."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    text = str(value).strip()
    parsed = try_parse_json(text)
    if isinstance(parsed, list):
        return [str(item) for item in parsed]
    return [item.strip() for item in text.split(",") if item.strip()]


def save(context: ExecutionContext, name: Optional[str], value: Any):
    """Store a result in the variable named by an output parameter."""
    if name:
        context.set(name, value)


def ensure_markdown(path: str) -> str:
    return path if path.endswith(".md") else f"{path}.md"


def resolve_structure(value: Any, context: ExecutionContext) -> Any:
    """Resolve placeholders inside every string of a parsed JSON structure."""
    if isinstance(value, str):
        return context.resolve_value(value)
    if isinstance(value, dict):
        return {context.resolve(key): resolve_structure(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_structure(item, context) for item in value]
    return value


def resolve_json_param(raw: Any, context: ExecutionContext, what: str) -> Any:
    """
    Decode a JSON parameter that may contain placeholders.

    The raw text is parsed first and placeholders are resolved per value, so
    substituted text cannot break the JSON. Text that only becomes JSON after
    substitution (``{{argsVar}}``) is resolved first and parsed afterwards.
    """
    if not raw:
        return {}
    parsed = try_parse_json(raw)
    if parsed is not None:
        return resolve_structure(parsed, context)
    resolved = context.resolve_value(raw)
    return parse_json_param(resolved, what)
