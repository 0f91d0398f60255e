"""Language-model command handler."""

import logging
from typing import List

from ...runtime_data.files import FileData
from ..definition import NodeType
from .base import NodeResult, register_handler, require, save, split_list

logger = logging.getLogger(__name__)

NO_RAG = "__none__"


def collect_attachments(names: List[str], context) -> List[FileData]:
    """Binary file descriptors held in the named variables."""
    attachments = []
    for name in names:
        data = FileData.from_value(context.get(name))
        if data is None:
            logger.debug(f"Attachment variable '{name}' holds no file data, skipping")
            continue
        # Text files reach the model through template substitution in the prompt
        if data.is_binary and data.data:
            attachments.append(data)
    return attachments


@register_handler(NodeType.COMMAND, external=True)
async def handle_command(params, context, collaborators, cancel) -> NodeResult:
    """
    Run a prompt through the command provider.

    Parameters: prompt, model, ragSetting (``__none__``, ``__websearch__`` or a
    setting name), attachments (variable names), vaultTools, mcpServers,
    saveTo, saveImageTo.
    """
    prompt = require(params, "prompt", "command")
    provider = collaborators.require("commands")

    rag_setting = params.get("ragSetting") or None
    if rag_setting == NO_RAG:
        rag_setting = None

    tools = {}
    if params.get("vaultTools"):
        tools["vaultTools"] = params["vaultTools"]
    if params.get("mcpServers"):
        tools["mcpServers"] = split_list(params["mcpServers"])

    attachments = collect_attachments(split_list(params.get("attachments")), context)

    result = await provider.run(
        prompt,
        model=params.get("model") or None,
        rag_setting=rag_setting,
        attachments=attachments or None,
        tools=tools or None,
    )

    save(context, params.get("saveTo"), result.text)

    images = []
    for index, image in enumerate(result.images):
        data = FileData.from_value(image)
        if data is None:
            continue
        if not data.path:
            extension = data.mime_type.split("/")[-1] or "png"
            data = FileData.from_bytes(f"generated-image-{index + 1}.{extension}", data.raw_bytes(), data.mime_type)
        images.append(data.to_dict())
    if images:
        save(context, params.get("saveImageTo"), images[0] if len(images) == 1 else images)

    return NodeResult(
        output={"text": result.text, "model": result.model, "images": len(images)}
    )
