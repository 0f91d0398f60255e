"""aiohttp implementations of the HTTP and MCP tool gateways."""

import itertools
import json
import logging
from typing import Any, Dict, Optional, Union

import aiohttp

from ..interfaces import HttpGateway, ToolGateway
from ..runtime_data.files import FileData
from ..types import HttpResponse, ToolCallResult

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "vault-automation", "version": "0.1.0"}


class _SessionOwner:
    """Lazily created ``aiohttp.ClientSession`` closed by ``close()`` or ``async with``."""

    def __init__(self, timeout_seconds: float = 60.0):
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=float(self.timeout_seconds))
            self._session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class AiohttpHttpGateway(_SessionOwner, HttpGateway):
    """
    HTTP gateway backed by aiohttp.

    Example:
        async with AiohttpHttpGateway(timeout_seconds=30) as http:
            response = await http.request("https://example.com/api", "GET")
    """

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Union[str, bytes, Dict[str, Any], FileData, None] = None,
        content_type: str = "json",
    ) -> HttpResponse:
        request_kwargs: Dict[str, Any] = {"headers": dict(headers or {})}

        if isinstance(body, dict):
            form = aiohttp.FormData()
            for name, value in body.items():
                if isinstance(value, FileData):
                    form.add_field(
                        name,
                        value.raw_bytes(),
                        filename=value.basename or value.name,
                        content_type=value.mime_type,
                    )
                else:
                    form.add_field(name, str(value))
            # aiohttp sets the multipart boundary itself
            request_kwargs["headers"] = {
                k: v for k, v in request_kwargs["headers"].items() if k.lower() != "content-type"
            }
            request_kwargs["data"] = form
        elif isinstance(body, FileData):
            request_kwargs["data"] = body.raw_bytes()
        elif body is not None:
            request_kwargs["data"] = body

        session = await self._get_session()
        async with session.request(method.upper(), url, **request_kwargs) as response:
            data = await response.read()
            logger.debug(f"{method.upper()} {url} -> {response.status}")
            return HttpResponse(
                status=response.status,
                headers={key: value for key, value in response.headers.items()},
                body=data,
            )


class McpError(Exception):
    """JSON-RPC error returned by an MCP server."""

    def __init__(self, code: int, message: str):
        self.code = code
        super().__init__(f"MCP Error {code}: {message}")


def parse_sse_result(text: str) -> Dict[str, Any]:
    """Last ``data:`` payload of a server-sent event stream."""
    last_data = ""
    for line in text.splitlines():
        if line.startswith("data:"):
            last_data = line[5:].strip()
    if not last_data:
        raise ValueError("No data received in SSE response")
    return json.loads(last_data)


class AiohttpMcpToolGateway(_SessionOwner, ToolGateway):
    """
    MCP client for the Streamable HTTP transport.

    Keeps one initialized session per endpoint (``Mcp-Session-Id``).
    """

    def __init__(self, timeout_seconds: float = 60.0):
        super().__init__(timeout_seconds)
        self._ids = itertools.count(1)
        self._sessions: Dict[str, Optional[str]] = {}

    def _headers(self, endpoint: str, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        headers.update(extra or {})
        session_id = self._sessions.get(endpoint)
        if session_id:
            headers["Mcp-Session-Id"] = session_id
        return headers

    async def _send(
        self,
        endpoint: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        notification: bool = False,
    ) -> Any:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        if not notification:
            message["id"] = next(self._ids)

        session = await self._get_session()
        async with session.post(
            endpoint, headers=self._headers(endpoint, headers), data=json.dumps(message)
        ) as response:
            session_id = response.headers.get("mcp-session-id")
            if session_id:
                self._sessions[endpoint] = session_id
            text = await response.text()

            if notification:
                return None
            if response.status >= 400:
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=text[:200],
                )

            if "text/event-stream" in response.headers.get("content-type", ""):
                payload = parse_sse_result(text)
            else:
                payload = json.loads(text)

        if payload.get("error"):
            error = payload["error"]
            raise McpError(error.get("code", -1), error.get("message", "Unknown error"))
        return payload.get("result")

    async def initialize(self, endpoint: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Open an MCP session with ``endpoint``."""
        result = await self._send(
            endpoint,
            "initialize",
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
            headers,
        )
        self._sessions.setdefault(endpoint, None)
        await self._send(endpoint, "notifications/initialized", headers=headers, notification=True)
        logger.info(f"Initialized MCP session with {endpoint}")
        return result or {}

    async def list_tools(self, endpoint: str, headers: Optional[Dict[str, str]] = None):
        if endpoint not in self._sessions:
            await self.initialize(endpoint, headers)
        result = await self._send(endpoint, "tools/list", headers=headers)
        return (result or {}).get("tools", [])

    async def call_tool(
        self,
        endpoint: str,
        tool_name: str,
        args: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> ToolCallResult:
        if endpoint not in self._sessions:
            await self.initialize(endpoint, headers)

        result = await self._send(
            endpoint, "tools/call", {"name": tool_name, "arguments": args or {}}, headers
        )
        result = result or {}

        ui = None
        resource_uri = ((result.get("_meta") or {}).get("ui") or {}).get("resourceUri")
        if resource_uri:
            ui = {"resourceUri": resource_uri}

        return ToolCallResult(
            content=result.get("content") or [],
            is_error=bool(result.get("isError")),
            structured_content=result.get("structuredContent"),
            ui=ui,
        )
