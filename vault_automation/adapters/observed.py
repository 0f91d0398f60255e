"""Document store wrapper that reports the paths workflows write."""

import logging
from typing import Callable, List, Optional

from ..interfaces import DocumentStore
from ..types import ListFilters, ListResult, SearchMatch, WriteMode, WriteOutcome

logger = logging.getLogger(__name__)


class ObservedDocumentStore(DocumentStore):
    """
    Delegates to another store and calls ``on_write(path)`` before every
    write or rename, so that event triggers can ignore their own writes.
    """

    def __init__(self, inner: DocumentStore, on_write: Callable[[str], None]):
        self.inner = inner
        self.on_write = on_write

    def _notify(self, *paths: str):
        for path in paths:
            self.on_write(path)

    async def read(self, path: str) -> str:
        return await self.inner.read(path)

    async def read_bytes(self, path: str) -> bytes:
        return await self.inner.read_bytes(path)

    async def write(self, path: str, content: str, mode: WriteMode = WriteMode.OVERWRITE) -> WriteOutcome:
        self._notify(path)
        return await self.inner.write(path, content, mode)

    async def write_bytes(self, path: str, data: bytes) -> WriteOutcome:
        self._notify(path)
        return await self.inner.write_bytes(path, data)

    async def exists(self, path: str) -> bool:
        return await self.inner.exists(path)

    async def rename(self, old_path: str, new_path: str) -> None:
        self._notify(old_path, new_path)
        await self.inner.rename(old_path, new_path)

    async def search(self, query: str, search_content: bool = False, limit: int = 10) -> List[SearchMatch]:
        return await self.inner.search(query, search_content, limit)

    async def list(self, folder: str, filters: Optional[ListFilters] = None) -> ListResult:
        return await self.inner.list(folder, filters)

    async def list_folders(self, folder: str = "") -> List[str]:
        return await self.inner.list_folders(folder)
