"""Composition and host integration handlers: workflow, rag-sync and obsidian-command."""

import logging
import time

from ...errors import HandlerError
from ..definition import NodeType
from .base import NodeResult, ensure_markdown, register_handler, require, save

logger = logging.getLogger(__name__)


@register_handler(NodeType.WORKFLOW, raw_params=("input", "output"), external=True)
async def handle_workflow(params, context, collaborators, cancel) -> NodeResult:
    """
    Invoke a sub-workflow.

    Example YAML:

    ```yaml
    - id: summarize
      type: workflow
      path: workflows/summarize.md
      name: summarize
      input: '{"text": "{{content}}"}'
      output: '{"summary": "result"}'
    ```
    """
    path = require(params, "path", "workflow")
    invoker = collaborators.require("subworkflows")

    merged = await invoker.invoke(
        path=path,
        name=params.get("name") or None,
        input_mapping=params.get("input"),
        output_mapping=params.get("output"),
        prefix=params.get("prefix", ""),
        caller=context,
    )
    return NodeResult(output=merged)


@register_handler(NodeType.RAG_SYNC, external=True)
async def handle_rag_sync(params, context, collaborators, cancel) -> NodeResult:
    """
    Sync a note to a retrieval store.

    ``path`` uploads, ``oldPath`` removes the previous entry (rename), and
    ``oldPath`` alone deletes.
    """
    path = params.get("path")
    old_path = params.get("oldPath")
    if not path and not old_path:
        raise HandlerError("rag-sync node requires 'path' or 'oldPath' property")
    setting = require(params, "ragSetting", "rag-sync")
    rag = collaborators.require("rag")

    note_path = ensure_markdown(path) if path else None
    old_note_path = ensure_markdown(old_path) if old_path else None

    if note_path and collaborators.documents is not None:
        if not await collaborators.documents.exists(note_path):
            raise HandlerError(f"Note not found: {note_path}")

    details = await rag.sync(note_path, old_note_path, setting)

    if not note_path:
        mode = "delete"
    elif old_note_path:
        mode = "rename"
    else:
        mode = "sync"

    value = {
        "path": note_path,
        "oldPath": old_note_path,
        "deletedOldPath": bool(details.get("deletedOldPath", old_note_path is not None)),
        "fileId": details.get("fileId"),
        "ragSetting": setting,
        "syncedAt": int(time.time() * 1000),
        "mode": mode,
    }
    save(context, params.get("saveTo"), value)
    return NodeResult(output=value)


@register_handler(NodeType.OBSIDIAN_COMMAND, external=True)
async def handle_host_command(params, context, collaborators, cancel) -> NodeResult:
    command_id = require(params, "command", "obsidian-command")
    path = params.get("path") or None
    host = collaborators.require("host")

    executed = await host.execute(command_id, path)
    if not executed:
        raise HandlerError(f"Command not found: {command_id}")

    value = {
        "commandId": command_id,
        "path": path,
        "executed": True,
        "timestamp": int(time.time() * 1000),
    }
    save(context, params.get("saveTo"), value)
    return NodeResult(output=value)
