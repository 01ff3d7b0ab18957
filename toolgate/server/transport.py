"""
Per-session JSON-RPC transport.

A :class:`SessionTransport` owns one session's conversation with the
:class:`~toolgate.tools.RemoteToolService`. It decodes JSON-RPC 2.0 envelopes
carrying MCP-shaped methods, runs them one at a time and encodes the reply.

Protocol failures (malformed envelope, unknown method, bad params) are
answered with a JSON-RPC ``error`` member. Tool failures are answered with an
MCP tool result flagged ``isError`` so callers can tell the two apart.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from ..exceptions import (
    BadSessionError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ProtocolError,
    ToolError,
    to_jsonrpc_error,
)
from ..tools import RemoteToolService

logger = logging.getLogger("toolgate.server.transport")

MCP_PROTOCOL_VERSION = "2025-03-26"
SERVER_INFO = {"name": "random-int-server", "version": "0.0.1"}
MAX_PENDING_NOTIFICATIONS = 100


class RequestEnvelope(BaseModel):
    """A decoded JSON-RPC 2.0 request or notification."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: Optional[dict[str, Any]] = None
    id: Optional[Union[StrictStr, StrictInt]] = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class ToolCallParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: StrictStr
    arguments: Optional[dict[str, Any]] = None


def decode_envelope(body: Any) -> RequestEnvelope:
    """Validate a parsed JSON body as a single JSON-RPC request.

    Raises:
        InvalidRequestError: The body is not a JSON-RPC 2.0 request object.
    """
    if isinstance(body, list):
        raise InvalidRequestError("Batch requests are not supported")
    if not isinstance(body, dict):
        raise InvalidRequestError("Invalid Request: expected a JSON object")
    try:
        return RequestEnvelope.model_validate(body)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        detail = f" ({', '.join(fields)})" if fields else ""
        raise InvalidRequestError(f"Invalid Request{detail}") from None


def _request_id(body: Any) -> Any:
    """Best-effort id of a body that failed validation."""
    if isinstance(body, dict):
        rid = body.get("id")
        if isinstance(rid, (str, int)) and not isinstance(rid, bool):
            return rid
    return None


def tool_result(text: str, is_error: bool = False, code: Optional[str] = None) -> dict:
    result: dict[str, Any] = {
        "content": [{"type": "text", "text": text}],
        "isError": is_error,
    }
    if code is not None:
        result["structuredContent"] = {"error": code}
    return result


class SessionTransport:
    """One session's channel to the tool service.

    Requests are served strictly one at a time in arrival order; a second
    request for the same session waits until the first has produced its
    reply.
    """

    def __init__(
        self,
        session_id: str,
        service: RemoteToolService,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id
        self._service = service
        self._clock = clock
        self._lock = asyncio.Lock()
        self._outbox: deque = deque(maxlen=MAX_PENDING_NOTIFICATIONS)
        self.created_at = clock()
        self.last_activity = self.created_at
        self.initialized = False
        self.closed = False
        self.request_count = 0
        self._methods: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "initialize": self._initialize,
            "notifications/initialized": self._initialized,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    @property
    def service(self) -> RemoteToolService:
        return self._service

    def idle_for(self, now: Optional[float] = None) -> float:
        """Seconds since the last message was received."""
        return (self._clock() if now is None else now) - self.last_activity

    def touch(self) -> None:
        self.last_activity = self._clock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def handle_message(self, body: Any) -> Optional[dict[str, Any]]:
        """Process one inbound envelope and return the JSON-RPC reply.

        Returns ``None`` for notifications, which get no reply.

        Raises:
            BadSessionError: The transport has been closed.
        """
        async with self._lock:
            if self.closed:
                raise BadSessionError()
            self.touch()
            self.request_count += 1

            try:
                envelope = decode_envelope(body)
            except ProtocolError as e:
                logger.info("Session %s: %s", self.session_id, e.message)
                return to_jsonrpc_error(e, _request_id(body))

            try:
                result = await self._dispatch(envelope)
            except ProtocolError as e:
                if envelope.is_notification:
                    return None
                return to_jsonrpc_error(e, envelope.id)
            except Exception as e:
                logger.exception(
                    "Session %s: %s failed", self.session_id, envelope.method
                )
                if envelope.is_notification:
                    return None
                return to_jsonrpc_error(e, envelope.id)

            if envelope.is_notification:
                return None
            return {"jsonrpc": "2.0", "result": result, "id": envelope.id}

    async def _dispatch(self, envelope: RequestEnvelope) -> Any:
        handler = self._methods.get(envelope.method)
        if handler is None:
            raise MethodNotFoundError(f"Method not found: {envelope.method}")
        return await handler(envelope.params or {})

    async def poll(self) -> list[dict[str, Any]]:
        """Serve a continuation request with the pending notifications."""
        async with self._lock:
            if self.closed:
                raise BadSessionError()
            self.touch()
            return self.drain()

    def drain(self) -> list[dict[str, Any]]:
        """Return and clear the notifications queued for this session."""
        pending = list(self._outbox)
        self._outbox.clear()
        return pending

    def notify(self, method: str, params: dict[str, Any]) -> None:
        self._outbox.append({"jsonrpc": "2.0", "method": method, "params": params})

    def close(self) -> None:
        self.closed = True
        self._outbox.clear()

    # -----------------------------------------------------------------------
    # Methods
    # -----------------------------------------------------------------------

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        self.initialized = True
        return {
            "protocolVersion": requested if isinstance(requested, str) else MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}, "logging": {}},
            "serverInfo": dict(SERVER_INFO),
        }

    async def _initialized(self, params: dict[str, Any]) -> None:
        return None

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _list_tools(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self._service.list_tools()}

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            call = ToolCallParams.model_validate(params)
        except ValidationError:
            raise InvalidParamsError(
                "Invalid params: tools/call needs a string 'name' and object 'arguments'"
            ) from None

        try:
            text = await self._service.invoke(call.name, call.arguments)
        except ToolError as e:
            logger.info(
                "Session %s: tool %s rejected: %s", self.session_id, call.name, e.message
            )
            self.notify(
                "notifications/message",
                {"level": "warning", "logger": "tools", "data": {"tool": call.name, "error": e.code}},
            )
            return tool_result(e.message, is_error=True, code=e.code)

        logger.info("Session %s: tool %s called", self.session_id, call.name)
        self.notify(
            "notifications/message",
            {"level": "info", "logger": "tools", "data": {"tool": call.name, "result": text}},
        )
        return tool_result(text)
