"""
Node handlers.

Importing this package registers a handler for every node type.
"""

from .base import (
    HandlerSpec,
    NodeHandlerRegistry,
    NodeResult,
    register_handler,
    registry,
)
from . import command, control_flow, files, http, integration, notes, prompts, variables

__all__ = [
    "HandlerSpec",
    "NodeHandlerRegistry",
    "NodeResult",
    "register_handler",
    "registry",
]
