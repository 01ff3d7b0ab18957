"""
Toolgate - Tool clients used by the conversation loop.

Two interchangeable clients expose ``list_tools()`` and ``invoke()``:

* :class:`LocalToolClient` calls a :class:`~toolgate.tools.RemoteToolService`
  in process.
* :class:`GatewayToolClient` talks JSON-RPC to a toolgate gateway over HTTP,
  holding on to the session the gateway assigns.

Example:
    ```python
    async with GatewayToolClient("http://localhost:8080/invoke") as tools:
        text = await tools.invoke("randomInt", {"max": 10})
    ```
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

from .exceptions import (
    BAD_SESSION,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    TOOL_ERRORS,
    BadSessionError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    ProtocolError,
    ToolError,
    TransportError,
)
from .models import ToolSpec
from .server.config import DEFAULT_SESSION_HEADER
from .server.transport import MCP_PROTOCOL_VERSION
from .tools import RemoteToolService

logger = logging.getLogger("toolgate.client")

CLIENT_INFO = {"name": "toolgate-client", "version": "0.1.0"}

PROTOCOL_ERRORS: dict[int, type[ProtocolError]] = {
    PARSE_ERROR: ParseError,
    INVALID_REQUEST: InvalidRequestError,
    METHOD_NOT_FOUND: MethodNotFoundError,
    INVALID_PARAMS: InvalidParamsError,
    BAD_SESSION: BadSessionError,
}


def _tool_text(result: dict[str, Any]) -> str:
    return "".join(
        item.get("text", "")
        for item in result.get("content") or []
        if item.get("type") == "text"
    )


class LocalToolClient:
    """Runs tools on an in-process service."""

    def __init__(self, service: Optional[RemoteToolService] = None) -> None:
        self._service = service or RemoteToolService()

    @property
    def service(self) -> RemoteToolService:
        return self._service

    async def list_tools(self) -> list[ToolSpec]:
        return self._service.specs()

    async def invoke(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        return await self._service.invoke(name, arguments)

    async def close(self) -> None:
        return None


class GatewayToolClient:
    """JSON-RPC client for a toolgate gateway.

    The first call sends ``initialize``; the ``Session-Id`` the gateway
    returns is attached to every later request. The handshake happens once
    and is shared by concurrent callers.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        session_header: str = DEFAULT_SESSION_HEADER,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.session_id: Optional[str] = None
        self.server_info: Optional[dict[str, Any]] = None
        self._session_header = session_header
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._connect_lock = asyncio.Lock()
        self._next_id = 0

    @property
    def connected(self) -> bool:
        return self.server_info is not None

    def _headers(self) -> dict[str, str]:
        if self.session_id:
            return {self._session_header: self.session_id}
        return {}

    def _handle_response(self, response: httpx.Response) -> Any:
        """Decode a gateway response and raise on JSON-RPC errors."""
        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            error = data["error"]
            code = error.get("code")
            error_cls = PROTOCOL_ERRORS.get(code, ProtocolError)
            raise error_cls(
                error.get("message", "Protocol error"),
                code=code,
                status_code=response.status_code,
                response=data,
            )
        if response.status_code >= 400:
            raise ProtocolError(
                f"Gateway request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return data

    async def _send(self, method: str, url_params: Optional[dict] = None, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(
                method, self.endpoint, params=url_params, headers=self._headers(), **kwargs
            )
        except httpx.TransportError as e:
            raise TransportError(f"Gateway request failed: {e}") from e

    async def _post(self, message: dict[str, Any]) -> Optional[dict[str, Any]]:
        response = await self._send("POST", json=message)
        assigned = response.headers.get(self._session_header)
        if assigned and self.session_id is None:
            self.session_id = assigned
            logger.info("Gateway assigned session %s", assigned)
        if response.status_code == 202:
            return None
        return self._handle_response(response)

    async def _call(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        self._next_id += 1
        message = {"jsonrpc": "2.0", "id": self._next_id, "method": method}
        if params is not None:
            message["params"] = params
        data = await self._post(message)
        return (data or {}).get("result") or {}

    async def connect(self) -> None:
        """Run the ``initialize`` handshake if it has not happened yet."""
        async with self._connect_lock:
            if self.connected:
                return
            result = await self._call(
                "initialize",
                {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": dict(CLIENT_INFO),
                },
            )
            await self._post({"jsonrpc": "2.0", "method": "notifications/initialized"})
            self.server_info = result.get("serverInfo") or {}

    async def request(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Send a JSON-RPC request on the session and return its result."""
        await self.connect()
        return await self._call(method, params)

    async def ping(self) -> None:
        await self.request("ping")

    async def list_tools(self) -> list[ToolSpec]:
        result = await self.request("tools/list")
        return [
            ToolSpec(
                name=t["name"],
                description=t.get("description", ""),
                parameters=t.get("inputSchema") or {"type": "object", "properties": {}},
            )
            for t in result.get("tools", [])
        ]

    async def invoke(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        """Call tool *name* on the gateway and return its text output.

        Raises:
            UnknownToolError: The gateway has no such tool.
            InvalidArgumentError: The gateway rejected the arguments.
            ProtocolError: The gateway rejected the envelope.
            TransportError: The gateway could not be reached.
        """
        result = await self.request(
            "tools/call", {"name": name, "arguments": dict(arguments or {})}
        )
        text = _tool_text(result)
        if result.get("isError"):
            code = (result.get("structuredContent") or {}).get("error")
            error_cls = TOOL_ERRORS.get(code, ToolError)
            raise error_cls(text or f"Tool {name} failed", tool_name=name)
        return text

    async def poll(self) -> list[dict[str, Any]]:
        """Fetch notifications the gateway queued for this session."""
        if self.session_id is None:
            raise BadSessionError()
        response = await self._send("GET", url_params={"session": self.session_id})
        return self._handle_response(response) or []

    async def close(self) -> None:
        """Retire the gateway session and close the HTTP client."""
        try:
            if self.session_id is not None:
                response = await self._send("DELETE")
                if response.status_code != 204:
                    logger.debug(
                        "Session %s was already gone (HTTP %d)",
                        self.session_id,
                        response.status_code,
                    )
        finally:
            self.session_id = None
            self.server_info = None
            await self._client.aclose()

    async def __aenter__(self) -> "GatewayToolClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
