"""
Graph builder.

Turns the declared node list into an immutable graph with every edge
resolved: explicit ``next`` targets, ``if``/``while`` branch targets and the
default successor (the next node in declaration order).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import (
    DuplicateNodeIdError,
    InvalidEdgeError,
    UnknownNodeTypeError,
    WorkflowParseError,
)
from .definition import END, NodeDefinition, NodeType


@dataclass(frozen=True)
class GraphNode:
    """
    A node with resolved edges. ``None`` as a target means the run ends.

    Attributes:
        explicit_next: Whether ``next`` was declared (including ``end``)
        successor: Target used when no branch applies
        true_target: ``if``/``while`` target when the condition holds
        false_target: ``if``/``while`` target otherwise
    """

    id: str
    type: NodeType
    properties: Mapping[str, str]
    index: int
    explicit_next: bool
    successor: Optional[str]
    true_target: Optional[str] = None
    false_target: Optional[str] = None

    def get(self, key: str, default: str = "") -> str:
        return self.properties.get(key, default)


@dataclass(frozen=True)
class WorkflowGraph:
    """Immutable graph keyed by node id plus the declaration order."""

    nodes: Mapping[str, GraphNode]
    order: Tuple[str, ...]
    name: Optional[str] = None

    @property
    def start_id(self) -> str:
        return self.order[0]

    def get(self, node_id: str) -> Optional[GraphNode]:
        return self.nodes.get(node_id)

    def default_successor(self, node_id: str) -> Optional[str]:
        """Next node in declaration order, or None past the last node."""
        index = self.nodes[node_id].index + 1
        return self.order[index] if index < len(self.order) else None

    def __len__(self) -> int:
        return len(self.order)

    def __iter__(self):
        return (self.nodes[node_id] for node_id in self.order)


def _resolve_target(source: str, target: Optional[str], fallback: Optional[str], ids: Iterable[str]) -> Optional[str]:
    if target is None:
        return fallback
    if target == END:
        return None
    if target not in ids:
        raise InvalidEdgeError(source, target)
    return target


def build_graph(nodes: List[NodeDefinition], name: Optional[str] = None) -> WorkflowGraph:
    """
    Build a graph from a node list.

    Args:
        nodes: Nodes in declaration order
        name: Workflow name carried along for logging

    Returns:
        WorkflowGraph

    Raises:
        DuplicateNodeIdError: If two nodes share an id
        UnknownNodeTypeError: If a node type is not supported
        InvalidEdgeError: If an edge targets an unknown id
    """
    if not nodes:
        raise WorkflowParseError("Workflow has no nodes")

    ids: Dict[str, int] = {}
    for index, node in enumerate(nodes):
        if node.id in ids:
            raise DuplicateNodeIdError(node.id)
        ids[node.id] = index

    order = tuple(node.id for node in nodes)
    graph_nodes: Dict[str, GraphNode] = {}

    for index, node in enumerate(nodes):
        try:
            node_type = NodeType(node.type)
        except ValueError:
            raise UnknownNodeTypeError(node.id, node.type) from None

        default = order[index + 1] if index + 1 < len(order) else None
        successor = _resolve_target(node.id, node.next, default, ids)
        true_target = false_target = None
        if node_type.is_branch:
            true_target = _resolve_target(node.id, node.true_next, default, ids)
            false_target = _resolve_target(node.id, node.false_next, default, ids)

        graph_nodes[node.id] = GraphNode(
            id=node.id,
            type=node_type,
            properties=MappingProxyType(dict(node.properties)),
            index=index,
            explicit_next=node.next is not None,
            successor=successor,
            true_target=true_target,
            false_target=false_target,
        )

    return WorkflowGraph(nodes=MappingProxyType(graph_nodes), order=order, name=name)
