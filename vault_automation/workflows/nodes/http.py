"""HTTP and remote tool (MCP) handlers."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ...errors import HandlerError
from ...runtime_data.files import FileData, extension_for_mime_type, is_binary_mime_type
from ...runtime_data.values import to_text, try_parse_json
from ..definition import NodeType
from .base import (
    NodeResult,
    parse_bool,
    register_handler,
    require,
    resolve_json_param,
    save,
)

logger = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}


def parse_headers(text: Optional[str]) -> Dict[str, str]:
    """Headers given as a JSON object or as ``Key: Value`` lines."""
    if not text:
        return {}
    parsed = try_parse_json(text)
    if isinstance(parsed, dict):
        return {str(key): str(value) for key, value in parsed.items()}
    headers = {}
    for line in text.splitlines():
        key, colon, value = line.partition(":")
        if colon and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def _build_body(params: Dict[str, Any], context, content_type: str):
    raw = params.get("body")
    if not raw:
        return None

    if content_type == "form-data":
        fields = try_parse_json(raw)
        if not isinstance(fields, dict):
            raise HandlerError("form-data contentType requires body to be a valid JSON object")
        body = {}
        for key, value in fields.items():
            resolved = context.resolve_value(value) if isinstance(value, str) else value
            file_data = FileData.from_value(resolved)
            body[context.resolve(key)] = file_data if file_data is not None else to_text(resolved)
        return body

    if content_type == "binary":
        file_data = FileData.from_value(context.resolve_value(raw))
        if file_data is None or not file_data.is_binary:
            raise HandlerError("binary contentType requires file data with binary content")
        return file_data

    return context.resolve(raw)


def _download_name(url: str, mime_type: str) -> str:
    basename = urlparse(url).path.rsplit("/", 1)[-1]
    if basename and "." in basename:
        return basename
    extension = extension_for_mime_type(mime_type)
    return f"download.{extension}" if extension else "download"


@register_handler(NodeType.HTTP, raw_params=("body",), external=True)
async def handle_http(params, context, collaborators, cancel) -> NodeResult:
    """
    Perform an HTTP request.

    The body is only sent for POST, PUT and PATCH. ``throwOnError: true``
    turns 4xx/5xx responses into node failures. Binary responses are saved
    as file data, text responses as text.
    """
    url = require(params, "url", "http")
    method = (params.get("method") or "GET").upper()
    content_type = params.get("contentType") or "json"
    gateway = collaborators.require("http")

    headers = parse_headers(params.get("headers"))
    body = _build_body(params, context, content_type) if method in BODY_METHODS else None

    if isinstance(body, FileData):
        if body.mime_type:
            headers.setdefault("Content-Type", body.mime_type)
        body = body.raw_bytes()
    elif isinstance(body, str):
        default_type = "text/plain" if content_type == "text" else "application/json"
        headers.setdefault("Content-Type", default_type)

    try:
        response = await gateway.request(
            url, method=method, headers=headers, body=body, content_type=content_type
        )
    except HandlerError:
        raise
    except Exception as e:
        raise HandlerError(f"HTTP request failed: {method} {url} - {e}") from e

    save(context, params.get("saveStatus"), response.status)

    if response.status >= 400 and parse_bool(params.get("throwOnError")):
        raise HandlerError(f"HTTP {response.status} {method} {url}: {response.text}")

    response_type = params.get("responseType") or "auto"
    mime_type = (response.content_type or "application/octet-stream").split(";")[0].strip()
    if response_type == "binary":
        is_binary = True
    elif response_type == "text":
        is_binary = False
    else:
        is_binary = is_binary_mime_type(mime_type)

    if is_binary:
        file_data = FileData.from_bytes(_download_name(url, mime_type), response.body, mime_type)
        file_data.path = ""
        value: Any = file_data.to_dict()
    else:
        value = response.text

    save(context, params.get("saveTo"), value)
    return NodeResult(output={"status": response.status, "contentType": mime_type, "body": value})


@register_handler(NodeType.MCP, raw_params=("args", "headers"), external=True)
async def handle_mcp(params, context, collaborators, cancel) -> NodeResult:
    """Call a tool on a remote MCP server over HTTP."""
    url = require(params, "url", "mcp")
    tool_name = require(params, "tool", "mcp")
    gateway = collaborators.require("tools")

    args = resolve_json_param(params.get("args"), context, "MCP args")
    headers = resolve_json_param(params.get("headers"), context, "MCP headers")
    if not isinstance(args, dict):
        raise HandlerError("MCP args must be a JSON object")
    if not isinstance(headers, dict):
        raise HandlerError("MCP headers must be a JSON object")

    result = await gateway.call_tool(url, tool_name, args, {k: str(v) for k, v in headers.items()})

    if result.is_error:
        raise HandlerError(f"MCP tool execution failed: {result.text}")

    save(context, params.get("saveTo"), result.text)
    if result.ui:
        save(
            context,
            params.get("saveUiTo"),
            {"serverUrl": url, "toolResult": result.model_dump(), "uiResource": result.ui},
        )

    return NodeResult(output={"tool": tool_name, "args": args, "result": result.text})
