"""Loads workflow definitions from documents in the store."""

import logging
from typing import Optional, Tuple

from ..errors import WorkflowParseError
from ..interfaces import DocumentStore
from .definition import WorkflowDefinition, parse_workflow

logger = logging.getLogger(__name__)


def split_workflow_id(workflow_id: str) -> Tuple[str, Optional[str]]:
    """Split ``path#name`` into its parts."""
    path, _, name = workflow_id.partition("#")
    return path, name or None


def make_workflow_id(path: str, name: Optional[str]) -> str:
    return f"{path}#{name}" if name else path


class WorkflowLoader:
    """Reads a document and parses one of its workflow blocks."""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def resolve_path(self, path: str) -> str:
        """
        Find the document for ``path``, trying a ``.md`` suffix as well.

        Raises:
            WorkflowParseError: If neither exists
        """
        if await self.documents.exists(path):
            return path
        if not path.endswith(".md") and await self.documents.exists(f"{path}.md"):
            return f"{path}.md"
        raise WorkflowParseError(f"Workflow file not found: {path}")

    async def load(self, path: str, name: Optional[str] = None) -> Tuple[str, WorkflowDefinition]:
        """
        Load a workflow.

        Args:
            path: Document path, with or without ``.md``
            name: Name of the block; required when the document holds several

        Returns:
            Tuple of the resolved document path and the definition
        """
        resolved = await self.resolve_path(path)
        content = await self.documents.read(resolved)
        definition = parse_workflow(content, name=name)
        logger.debug(f"Loaded workflow {make_workflow_id(resolved, definition.name)}")
        return resolved, definition
