"""
Toolgate - Custom exceptions for error handling.

Three families mirror how failures are surfaced:

* ``ProtocolError`` - malformed JSON-RPC envelopes and bad sessions. Always
  reported to the caller as a JSON-RPC ``error`` member, never retried.
* ``ApplicationError`` - tool failures, vendor failures, hop-limit and
  unanswered tool calls. Reported as a user-visible message; the conversation
  turn is aborted.
* ``TransportError`` - network failures reaching a vendor or the gateway.
"""

from typing import Any, Optional

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
BAD_SESSION = -32000


class ToolgateError(Exception):
    """Base exception for all toolgate errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


# ---------------------------------------------------------------------------
# Protocol errors
# ---------------------------------------------------------------------------


class ProtocolError(ToolgateError):
    """Raised when a JSON-RPC envelope cannot be processed."""

    code = INVALID_REQUEST

    def __init__(self, message: str, code: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        if code is not None:
            self.code = code


class ParseError(ProtocolError):
    """Raised when the request body is not valid JSON."""

    code = PARSE_ERROR


class InvalidRequestError(ProtocolError):
    """Raised when the body is JSON but not a valid JSON-RPC request."""

    code = INVALID_REQUEST


class MethodNotFoundError(ProtocolError):
    """Raised for a JSON-RPC method the transport does not serve."""

    code = METHOD_NOT_FOUND


class InvalidParamsError(ProtocolError):
    """Raised when method params have the wrong shape."""

    code = INVALID_PARAMS


class BadSessionError(ProtocolError):
    """Raised when a session identifier is missing or not registered."""

    code = BAD_SESSION

    def __init__(self, message: str = "Bad Session", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


# ---------------------------------------------------------------------------
# Application errors
# ---------------------------------------------------------------------------


class ApplicationError(ToolgateError):
    """Raised when a conversation turn has to be aborted."""

    pass


class ToolError(ApplicationError):
    """Raised by the tool service when a tool cannot be executed."""

    code = "tool_error"

    def __init__(self, message: str, tool_name: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.tool_name = tool_name


class UnknownToolError(ToolError):
    """Raised when no tool is registered under the requested name."""

    code = "unknown_tool"


class InvalidArgumentError(ToolError):
    """Raised when tool arguments fail validation."""

    code = "invalid_argument"

    def __init__(self, message: str, errors: Optional[list[Any]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or []


TOOL_ERRORS: dict[str, type[ToolError]] = {
    UnknownToolError.code: UnknownToolError,
    InvalidArgumentError.code: InvalidArgumentError,
}


class VendorError(ApplicationError):
    """Raised when a vendor chat endpoint rejects a request or answers with nothing."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.provider = provider


class HopLimitExceededError(ApplicationError):
    """Raised when the vendor keeps requesting tools past the hop limit."""

    def __init__(self, max_hops: int) -> None:
        super().__init__(f"Too many hops: tool calls exceeded the limit of {max_hops}")
        self.max_hops = max_hops


class UnhandledToolCallsError(ApplicationError):
    """Raised when a vendor asked for several tools at once.

    Only the first call is executed; ``tool_names`` lists the ones that went
    unanswered and ``result`` carries the output of the honored call.
    """

    def __init__(
        self,
        tool_names: list[str],
        honored: Optional[str] = None,
        result: Optional[str] = None,
    ) -> None:
        names = ", ".join(tool_names)
        super().__init__(f"Unanswered simultaneous tool calls: {names}")
        self.tool_names = list(tool_names)
        self.honored = honored
        self.result = result


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(ToolgateError):
    """Raised when a vendor or the gateway cannot be reached."""

    pass


def to_jsonrpc_error(
    exc: Exception,
    request_id: Any = None,
) -> dict[str, Any]:
    """Build a JSON-RPC error body for an exception."""
    if isinstance(exc, ProtocolError):
        code, message = exc.code, exc.message
    else:
        code, message = INTERNAL_ERROR, "Internal error"
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": request_id,
    }
