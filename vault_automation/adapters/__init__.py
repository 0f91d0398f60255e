"""
Collaborator implementations: document stores and network gateways.
"""

from .documents import (
    FileSystemDocumentStore,
    InMemoryDocumentStore,
    VaultDocumentStore,
    extract_tags,
)
from .http import AiohttpHttpGateway, AiohttpMcpToolGateway, McpError, parse_sse_result
from .observed import ObservedDocumentStore

__all__ = [
    "FileSystemDocumentStore",
    "InMemoryDocumentStore",
    "VaultDocumentStore",
    "extract_tags",
    "AiohttpHttpGateway",
    "AiohttpMcpToolGateway",
    "McpError",
    "parse_sse_result",
    "ObservedDocumentStore",
]
