"""Attachment handlers: file-explorer and file-save."""

import logging
import posixpath

from ...errors import HandlerError
from ...runtime_data.files import FileData, is_binary_extension, split_path
from ...types import WriteMode
from ..definition import NodeType
from .base import NodeResult, register_handler, require, save, split_list

logger = logging.getLogger(__name__)


async def read_file_data(documents, path: str) -> FileData:
    """Load a document as file data, base64 encoding binary formats."""
    extension = split_path(path)["extension"]
    try:
        if is_binary_extension(extension):
            return FileData.from_bytes(path, await documents.read_bytes(path))
        return FileData.from_text(path, await documents.read(path))
    except FileNotFoundError:
        raise HandlerError(f"File not found: {path}") from None


@register_handler(NodeType.FILE_EXPLORER, external=True)
async def handle_file_explorer(params, context, collaborators, cancel) -> NodeResult:
    """
    Pick an existing file (``mode: select``) or name a new one (``mode: create``).

    ``path`` skips the picker. ``saveTo`` receives file data, ``savePathTo``
    the chosen path.
    """
    mode = params.get("mode") or "select"
    save_to = params.get("saveTo")
    save_path_to = params.get("savePathTo")
    if not save_to and not save_path_to:
        raise HandlerError("file-explorer node requires 'saveTo' or 'savePathTo' property")

    extensions = [ext.lower().lstrip(".") for ext in split_list(params.get("extensions"))] or None

    file_path = params.get("path")
    if not file_path:
        prompts = collaborators.require("prompts")
        file_path = await prompts.pick_file(
            default_path=params.get("default") or None,
            extensions=extensions,
            create=mode == "create",
        )
    if file_path is None:
        raise HandlerError("File selection cancelled by user")

    save(context, save_path_to, file_path)

    if save_to:
        if mode == "create":
            extension = split_path(file_path)["extension"]
            data = FileData.from_text(file_path, "")
            if is_binary_extension(extension):
                data.content_type = "binary"
        else:
            data = await read_file_data(collaborators.require("documents"), file_path)
        context.set(save_to, data.to_dict())

    return NodeResult(output={"path": file_path, "mode": mode})


@register_handler(NodeType.FILE_SAVE, external=True)
async def handle_file_save(params, context, collaborators, cancel) -> NodeResult:
    source = require(params, "source", "file-save")
    path = require(params, "path", "file-save")
    documents = collaborators.require("documents")

    if not context.has(source):
        raise HandlerError(f"Source variable '{source}' not found")
    data = FileData.from_value(context.get(source))
    if data is None or not data.data:
        raise HandlerError(f"Source variable '{source}' is not valid file data")

    if "." not in posixpath.basename(path) and data.extension:
        path = f"{path}.{data.extension}"

    try:
        if data.is_binary:
            await documents.write_bytes(path, data.raw_bytes())
        else:
            await documents.write(path, data.data, WriteMode.OVERWRITE)
    except OSError as e:
        raise HandlerError(f"Failed to save file {path}: {e}") from e

    save(context, params.get("savePathTo"), path)
    return NodeResult(output={"path": path, "contentType": data.content_type})
