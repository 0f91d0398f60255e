"""Document handlers: note, note-read, note-search, note-list, folder-list and open."""

import logging
import re
from typing import Optional

from ...errors import HandlerError
from ...types import ListFilters, WriteMode, WriteOutcome
from ..definition import NodeType
from .base import (
    NodeResult,
    ensure_markdown,
    parse_bool,
    parse_int,
    register_handler,
    require,
    save,
    split_list,
)

logger = logging.getLogger(__name__)

DURATION_PATTERN = re.compile(r"^(\d+)\s*(m|min|h|hour|d|day)s?$", re.IGNORECASE)
_UNIT_MS = {"m": 60_000, "min": 60_000, "h": 3_600_000, "hour": 3_600_000, "d": 86_400_000, "day": 86_400_000}


def parse_time_window(text: Optional[str]) -> Optional[int]:
    """``"7d"``, ``"30m"`` or ``"2h"`` in milliseconds; None when absent or invalid."""
    if not text:
        return None
    match = DURATION_PATTERN.match(text.strip())
    if not match:
        return None
    return int(match.group(1)) * _UNIT_MS[match.group(2).lower()]


@register_handler(NodeType.NOTE, external=True)
async def handle_note(params, context, collaborators, cancel) -> NodeResult:
    """
    Write a note.

    With ``confirm`` (default true) the prompt provider is asked first. A
    declined confirmation is a normal result: ``declined`` is stored in
    ``saveTo`` and the run continues.
    """
    path = ensure_markdown(require(params, "path", "note"))
    content = params.get("content", "")
    try:
        mode = WriteMode(params.get("mode") or WriteMode.OVERWRITE.value)
    except ValueError:
        raise HandlerError(f"Invalid note mode: {params.get('mode')}") from None
    documents = collaborators.require("documents")

    if parse_bool(params.get("confirm"), default=True) and collaborators.prompts is not None:
        approved = await collaborators.prompts.confirm_write(path, content, mode)
        if not approved:
            logger.info(f"Write to {path} declined by user")
            save(context, params.get("saveTo"), WriteOutcome.DECLINED.value)
            return NodeResult(output={"path": path, "mode": mode.value, "outcome": WriteOutcome.DECLINED.value})

    try:
        outcome = await documents.write(path, content, mode)
    except OSError as e:
        raise HandlerError(f"Failed to write note {path}: {e}") from e

    save(context, params.get("saveTo"), outcome.value)
    return NodeResult(output={"path": path, "mode": mode.value, "outcome": outcome.value})


@register_handler(NodeType.NOTE_READ, external=True)
async def handle_note_read(params, context, collaborators, cancel) -> NodeResult:
    save_to = require(params, "saveTo", "note-read")
    if not params.get("path"):
        raise HandlerError("note-read node missing 'path' property. Use prompt-file first to get the file path.")
    path = ensure_markdown(params["path"])
    documents = collaborators.require("documents")

    try:
        content = await documents.read(path)
    except FileNotFoundError:
        raise HandlerError(f"Note not found: {path}") from None

    context.set(save_to, content)
    return NodeResult(output={"path": path, "length": len(content)})


@register_handler(NodeType.NOTE_SEARCH, external=True)
async def handle_note_search(params, context, collaborators, cancel) -> NodeResult:
    query = require(params, "query", "note-search")
    save_to = require(params, "saveTo", "note-search")
    documents = collaborators.require("documents")

    matches = await documents.search(
        query,
        search_content=parse_bool(params.get("searchContent")),
        limit=parse_int(params.get("limit"), 10),
    )
    results = [
        {"name": m.name, "path": m.path, **({"matchedContent": m.matched_content} if m.matched_content else {})}
        for m in matches
    ]
    context.set(save_to, results)
    return NodeResult(output={"query": query, "count": len(results)})


@register_handler(NodeType.NOTE_LIST, external=True)
async def handle_note_list(params, context, collaborators, cancel) -> NodeResult:
    """List notes of a folder with time, tag and sort filters."""
    save_to = require(params, "saveTo", "note-list")
    documents = collaborators.require("documents")

    sort_by = params.get("sortBy") or None
    if sort_by not in (None, "created", "modified", "name"):
        raise HandlerError(f"Invalid sortBy: {sort_by}")

    filters = ListFilters(
        recursive=parse_bool(params.get("recursive")),
        created_within_ms=parse_time_window(params.get("createdWithin")),
        modified_within_ms=parse_time_window(params.get("modifiedWithin")),
        tags=[tag if tag.startswith("#") else f"#{tag}" for tag in split_list(params.get("tags"))],
        tag_match="all" if params.get("tagMatch") == "all" else "any",
        sort_by=sort_by,
        sort_order="asc" if params.get("sortOrder") == "asc" else "desc",
        limit=parse_int(params.get("limit"), 50),
    )
    listing = await documents.list(params.get("folder", ""), filters)

    value = {
        "notes": [note.model_dump() for note in listing.notes],
        "count": len(listing.notes),
        "totalCount": listing.total_count,
        "hasMore": listing.has_more,
    }
    context.set(save_to, value)
    return NodeResult(output={"count": value["count"], "totalCount": value["totalCount"]})


@register_handler(NodeType.FOLDER_LIST, external=True)
async def handle_folder_list(params, context, collaborators, cancel) -> NodeResult:
    save_to = require(params, "saveTo", "folder-list")
    documents = collaborators.require("documents")

    folders = sorted(await documents.list_folders(params.get("folder", "").rstrip("/")))
    value = {"folders": folders, "count": len(folders)}
    context.set(save_to, value)
    return NodeResult(output=value)


@register_handler(NodeType.OPEN, external=True)
async def handle_open(params, context, collaborators, cancel) -> NodeResult:
    path = ensure_markdown(require(params, "path", "open"))
    prompts = collaborators.require("prompts")
    await prompts.open_document(path)
    return NodeResult(output={"path": path})
