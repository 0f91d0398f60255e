"""
Document stores.

``FileSystemDocumentStore`` serves a vault directory on disk and
``InMemoryDocumentStore`` keeps documents in a dict (tests and embedding).
Searching, listing and tag extraction are shared by both.
"""

import asyncio
import logging
import os
import posixpath
import re
import time
from abc import abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..interfaces import DocumentStore
from ..types import ListFilters, ListResult, NoteEntry, SearchMatch, WriteMode, WriteOutcome

logger = logging.getLogger(__name__)

FRONTMATTER_PATTERN = re.compile(r"\A---\r?\n(.*?)\r?\n---\s*(?:\r?\n|\Z)", re.DOTALL)
INLINE_TAG_PATTERN = re.compile(r"(?:^|\s)(#[\w/\-]*[A-Za-z_/\-][\w/\-]*)", re.UNICODE)
MATCH_CONTEXT_CHARS = 50


def extract_tags(content: str) -> List[str]:
    """Frontmatter and inline tags of a markdown document, ``#``-prefixed and de-duplicated."""
    tags: List[str] = []
    body = content

    match = FRONTMATTER_PATTERN.match(content)
    if match:
        body = content[match.end():]
        try:
            frontmatter = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError:
            frontmatter = {}
        fm_tags = frontmatter.get("tags") if isinstance(frontmatter, dict) else None
        if isinstance(fm_tags, str):
            fm_tags = [t.strip() for t in fm_tags.split(",")]
        for tag in fm_tags or []:
            tag = str(tag).strip()
            if tag:
                tags.append(tag if tag.startswith("#") else f"#{tag}")

    in_code = False
    for line in body.splitlines():
        if line.lstrip().startswith("```"):
            in_code = not in_code
            continue
        if not in_code:
            tags.extend(INLINE_TAG_PATTERN.findall(line))

    return list(dict.fromkeys(tags))


def _in_folder(path: str, folder: str, recursive: bool) -> bool:
    folder = folder.strip("/")
    if not folder:
        return True
    if recursive:
        return path.startswith(folder + "/")
    return posixpath.dirname(path) == folder


def _basename(path: str) -> str:
    name = posixpath.basename(path)
    return name[:-3] if name.endswith(".md") else name


@dataclass
class DocumentStat:
    path: str
    created: float
    """Epoch milliseconds."""
    modified: float


class VaultDocumentStore(DocumentStore):
    """Search and listing on top of a few storage primitives."""

    @abstractmethod
    async def stat_markdown(self) -> List[DocumentStat]:
        """All markdown documents with their timestamps."""
        pass

    @abstractmethod
    async def all_folders(self) -> List[str]:
        pass

    async def search(self, query: str, search_content: bool = False, limit: int = 10) -> List[SearchMatch]:
        lower_query = query.lower()
        results: List[SearchMatch] = []
        for stat in sorted(await self.stat_markdown(), key=lambda s: s.path):
            if len(results) >= limit:
                break
            if not search_content:
                if lower_query in _basename(stat.path).lower() or lower_query in stat.path.lower():
                    results.append(SearchMatch(name=_basename(stat.path), path=stat.path))
                continue

            content = await self.read(stat.path)
            index = content.lower().find(lower_query)
            if index == -1:
                continue
            start = max(0, index - MATCH_CONTEXT_CHARS)
            end = min(len(content), index + len(query) + MATCH_CONTEXT_CHARS)
            snippet = (
                ("..." if start > 0 else "")
                + content[start:end]
                + ("..." if end < len(content) else "")
            )
            results.append(
                SearchMatch(name=_basename(stat.path), path=stat.path, matched_content=snippet)
            )
        return results

    async def list(self, folder: str, filters: Optional[ListFilters] = None) -> ListResult:
        filters = filters or ListFilters()
        now = time.time() * 1000

        stats = [s for s in await self.stat_markdown() if _in_folder(s.path, folder, filters.recursive)]
        if filters.created_within_ms is not None:
            stats = [s for s in stats if s.created >= now - filters.created_within_ms]
        if filters.modified_within_ms is not None:
            stats = [s for s in stats if s.modified >= now - filters.modified_within_ms]

        tags_by_path: Dict[str, List[str]] = {}
        for stat in stats:
            tags_by_path[stat.path] = extract_tags(await self.read(stat.path))

        if filters.tags:
            check = all if filters.tag_match == "all" else any
            stats = [
                s for s in stats
                if check(tag in tags_by_path[s.path] for tag in filters.tags)
            ]

        reverse = filters.sort_order == "desc"
        if filters.sort_by == "created":
            stats.sort(key=lambda s: s.created, reverse=reverse)
        elif filters.sort_by == "modified":
            stats.sort(key=lambda s: s.modified, reverse=reverse)
        elif filters.sort_by == "name":
            stats.sort(key=lambda s: _basename(s.path).lower(), reverse=reverse)

        notes = [
            NoteEntry(
                name=_basename(s.path),
                path=s.path,
                created=s.created,
                modified=s.modified,
                tags=tags_by_path[s.path],
            )
            for s in stats[: filters.limit]
        ]
        return ListResult(notes=notes, total_count=len(stats))

    async def list_folders(self, folder: str = "") -> List[str]:
        folder = folder.strip("/")
        folders = await self.all_folders()
        if folder:
            folders = [f for f in folders if f.startswith(folder + "/")]
        return sorted(folders)


class InMemoryDocumentStore(VaultDocumentStore):
    """Documents held in memory, keyed by path."""

    def __init__(self, documents: Optional[Dict[str, object]] = None):
        self.documents: Dict[str, bytes] = {}
        self.times: Dict[str, DocumentStat] = {}
        for path, content in (documents or {}).items():
            self._put(path, content.encode("utf-8") if isinstance(content, str) else content)

    def _put(self, path: str, data: bytes):
        now = time.time() * 1000
        created = self.times[path].created if path in self.times else now
        self.documents[path] = data
        self.times[path] = DocumentStat(path, created, now)

    async def read(self, path: str) -> str:
        return (await self.read_bytes(path)).decode("utf-8")

    async def read_bytes(self, path: str) -> bytes:
        if path not in self.documents:
            raise FileNotFoundError(path)
        return self.documents[path]

    async def write(self, path: str, content: str, mode: WriteMode = WriteMode.OVERWRITE) -> WriteOutcome:
        mode = WriteMode(mode)
        if path in self.documents:
            if mode == WriteMode.CREATE:
                return WriteOutcome.SKIPPED
            if mode == WriteMode.APPEND:
                content = self.documents[path].decode("utf-8") + "\n" + content
        self._put(path, content.encode("utf-8"))
        return WriteOutcome.WRITTEN

    async def write_bytes(self, path: str, data: bytes) -> WriteOutcome:
        self._put(path, bytes(data))
        return WriteOutcome.WRITTEN

    async def exists(self, path: str) -> bool:
        return path in self.documents

    async def rename(self, old_path: str, new_path: str) -> None:
        if old_path not in self.documents:
            raise FileNotFoundError(old_path)
        if new_path in self.documents:
            raise FileExistsError(new_path)
        self.documents[new_path] = self.documents.pop(old_path)
        stat = self.times.pop(old_path)
        self.times[new_path] = DocumentStat(new_path, stat.created, stat.modified)

    async def stat_markdown(self) -> List[DocumentStat]:
        return [stat for path, stat in self.times.items() if path.endswith(".md")]

    async def all_folders(self) -> List[str]:
        folders = set()
        for path in self.documents:
            parent = posixpath.dirname(path)
            while parent:
                folders.add(parent)
                parent = posixpath.dirname(parent)
        return list(folders)


class FileSystemDocumentStore(VaultDocumentStore):
    """
    Documents stored under a vault directory.

    Paths are relative to ``root`` with ``/`` separators. Blocking file I/O
    runs in the default executor.
    """

    def __init__(self, root):
        self.root = Path(root).expanduser().resolve()

    def _full_path(self, path: str) -> Path:
        full = (self.root / path.lstrip("/")).resolve()
        if full != self.root and self.root not in full.parents:
            raise PermissionError(f"Path outside vault: {path}")
        return full

    def _relative(self, full: Path) -> str:
        return full.relative_to(self.root).as_posix()

    async def _run(self, func, *args):
        return await asyncio.get_event_loop().run_in_executor(None, func, *args)

    async def read(self, path: str) -> str:
        return await self._run(lambda: self._full_path(path).read_text(encoding="utf-8"))

    async def read_bytes(self, path: str) -> bytes:
        return await self._run(lambda: self._full_path(path).read_bytes())

    async def write(self, path: str, content: str, mode: WriteMode = WriteMode.OVERWRITE) -> WriteOutcome:
        mode = WriteMode(mode)

        def _write() -> WriteOutcome:
            full = self._full_path(path)
            text = content
            if full.exists():
                if mode == WriteMode.CREATE:
                    return WriteOutcome.SKIPPED
                if mode == WriteMode.APPEND:
                    text = full.read_text(encoding="utf-8") + "\n" + content
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(text, encoding="utf-8")
            return WriteOutcome.WRITTEN

        outcome = await self._run(_write)
        logger.debug(f"Write {path} ({mode.value}): {outcome.value}")
        return outcome

    async def write_bytes(self, path: str, data: bytes) -> WriteOutcome:
        def _write() -> WriteOutcome:
            full = self._full_path(path)
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_bytes(data)
            return WriteOutcome.WRITTEN

        return await self._run(_write)

    async def exists(self, path: str) -> bool:
        return await self._run(lambda: self._full_path(path).is_file())

    async def rename(self, old_path: str, new_path: str) -> None:
        def _rename():
            source = self._full_path(old_path)
            target = self._full_path(new_path)
            if target.exists():
                raise FileExistsError(new_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            source.rename(target)

        await self._run(_rename)

    def _walk(self):
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Hidden folders (.obsidian, .git, history) are not part of the vault
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            yield Path(dirpath), dirnames, filenames

    async def stat_markdown(self) -> List[DocumentStat]:
        def _stat() -> List[DocumentStat]:
            stats = []
            for directory, _, filenames in self._walk():
                for filename in filenames:
                    if not filename.endswith(".md"):
                        continue
                    full = directory / filename
                    info = full.stat()
                    created = getattr(info, "st_birthtime", info.st_ctime)
                    stats.append(
                        DocumentStat(self._relative(full), created * 1000, info.st_mtime * 1000)
                    )
            return stats

        return await self._run(_stat)

    async def all_folders(self) -> List[str]:
        def _folders() -> List[str]:
            return [
                self._relative(directory / name)
                for directory, dirnames, _ in self._walk()
                for name in dirnames
            ]

        return await self._run(_folders)
