"""
Interactive handlers: prompt-file, prompt-selection and dialog.

In panel mode these always ask the user. Runs started from a hotkey or a
document event use the active/event document instead, unless the node sets
``forcePrompt``.
"""

import logging
from typing import Any, Dict, Optional

from ...errors import HandlerError
from ...runtime_data.files import split_path
from ...runtime_data.state import ExecutionContext, TriggerMode
from ...runtime_data.values import to_text, try_parse_json
from ...types import DialogSpec
from ..definition import NodeType
from .base import (
    NodeResult,
    ensure_markdown,
    parse_bool,
    register_handler,
    require,
    resolve_json_param,
    save,
    split_list,
)

logger = logging.getLogger(__name__)

HOTKEY_CONTENT = "__hotkeyContent__"
HOTKEY_SELECTION = "__hotkeySelection__"
HOTKEY_SELECTION_INFO = "__hotkeySelectionInfo__"
HOTKEY_ACTIVE_FILE = "__hotkeyActiveFile__"
EVENT_FILE = "__eventFile__"
EVENT_FILE_PATH = "__eventFilePath__"
EVENT_FILE_CONTENT = "__eventFileContent__"


def _file_path_from(value: Any) -> Optional[str]:
    info = value if isinstance(value, dict) else try_parse_json(value)
    if isinstance(info, dict) and info.get("path"):
        return str(info["path"])
    return None


def trigger_file_path(context: ExecutionContext) -> Optional[str]:
    """Path of the document the run was triggered on, if any."""
    if context.trigger_mode == TriggerMode.HOTKEY:
        return _file_path_from(context.get(HOTKEY_ACTIVE_FILE))
    if context.trigger_mode == TriggerMode.EVENT:
        return _file_path_from(context.get(EVENT_FILE))
    return None


def whole_file_selection(path: str, content: str) -> Dict[str, Any]:
    return {
        "filePath": path,
        "startLine": 1,
        "endLine": len(content.split("\n")),
        "start": 0,
        "end": len(content),
    }


@register_handler(NodeType.PROMPT_FILE, external=True)
async def handle_prompt_file(params, context, collaborators, cancel) -> NodeResult:
    save_to = require(params, "saveTo", "prompt-file")
    documents = collaborators.require("documents")

    file_path = None
    if not parse_bool(params.get("forcePrompt")):
        file_path = trigger_file_path(context)
    if file_path is None:
        prompts = collaborators.require("prompts")
        file_path = await prompts.pick_file(default_path=params.get("default") or None)
    if file_path is None:
        raise HandlerError("File selection cancelled by user")

    note_path = ensure_markdown(file_path)
    try:
        content = await documents.read(note_path)
    except FileNotFoundError:
        raise HandlerError(f"File not found: {note_path}") from None

    context.set(save_to, content)
    save(context, params.get("saveFileTo"), split_path(file_path))
    return NodeResult(output={"path": note_path, "length": len(content)})


@register_handler(NodeType.PROMPT_SELECTION, external=True)
async def handle_prompt_selection(params, context, collaborators, cancel) -> NodeResult:
    """
    Capture selected text.

    Sources, in order: hotkey selection, hotkey document content, event
    document content, event document read from the store, then a prompt.
    """
    save_to = require(params, "saveTo", "prompt-selection")
    save_selection_to = params.get("saveSelectionTo")
    mode = context.trigger_mode

    if mode == TriggerMode.HOTKEY:
        selection = to_text(context.get(HOTKEY_SELECTION))
        if selection:
            context.set(save_to, selection)
            info = context.get(HOTKEY_SELECTION_INFO)
            if info:
                save(context, save_selection_to, info)
            return NodeResult(output={"source": "hotkey-selection", "length": len(selection)})

        content = to_text(context.get(HOTKEY_CONTENT))
        if content:
            context.set(save_to, content)
            path = _file_path_from(context.get(HOTKEY_ACTIVE_FILE))
            if path:
                save(context, save_selection_to, whole_file_selection(path, content))
            return NodeResult(output={"source": "hotkey-content", "length": len(content)})

    if mode == TriggerMode.EVENT:
        content = to_text(context.get(EVENT_FILE_CONTENT))
        path = _file_path_from(context.get(EVENT_FILE)) or to_text(context.get(EVENT_FILE_PATH))
        if not content and path and collaborators.documents is not None:
            try:
                content = await collaborators.documents.read(path)
            except FileNotFoundError:
                logger.debug(f"Event document {path} is gone, falling back to prompt")
        if content:
            context.set(save_to, content)
            save(context, save_selection_to, whole_file_selection(path, content))
            return NodeResult(output={"source": "event", "length": len(content)})

    prompts = collaborators.require("prompts")
    selection = await prompts.pick_selection()
    if selection is None:
        raise HandlerError("Selection cancelled by user")

    context.set(save_to, selection.text)
    save(context, save_selection_to, selection.to_variable())
    return NodeResult(output={"source": "prompt", "filePath": selection.file_path, "length": len(selection.text)})


@register_handler(NodeType.DIALOG, raw_params=("defaults",), external=True)
async def handle_dialog(params, context, collaborators, cancel) -> NodeResult:
    """
    Show a dialog. ``saveTo`` receives ``{button, selected, input}``.

    Dismissing the dialog fails the node.
    """
    prompts = collaborators.require("prompts")

    defaults = {}
    if params.get("defaults"):
        try:
            parsed = resolve_json_param(params["defaults"], context, "dialog defaults")
        except HandlerError as e:
            logger.warning(f"Ignoring dialog defaults: {e}")
            parsed = {}
        if isinstance(parsed, dict):
            defaults = {
                key: parsed[key]
                for key in ("input", "selected")
                if key in parsed and (key != "selected" or isinstance(parsed[key], list))
            }

    spec = DialogSpec(
        title=params.get("title") or "Dialog",
        message=params.get("message", ""),
        options=split_list(params.get("options")),
        multi_select=parse_bool(params.get("multiSelect")),
        markdown=parse_bool(params.get("markdown")),
        button1=params.get("button1") or "OK",
        button2=params.get("button2") or None,
        input_title=params.get("inputTitle") or None,
        multiline=parse_bool(params.get("multiline")),
        defaults=defaults,
    )

    result = await prompts.ask(spec)
    if result is None:
        raise HandlerError("Dialog cancelled by user")

    value = result.model_dump()
    save(context, params.get("saveTo"), value)
    return NodeResult(output=value)
