"""
Toolgate - session-scoped tool gateway and provider-agnostic tool loop.

A gateway serves remote tools to many concurrent sessions over JSON-RPC,
and a conversation loop lets OpenAI, Gemini and Claude models call those
tools through one uniform cycle.
"""

from .adapters import (
    AdapterConfig,
    ClaudeAdapter,
    GeminiAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    get_adapter,
)
from .client import GatewayToolClient, LocalToolClient
from .exceptions import (
    ApplicationError,
    BadSessionError,
    HopLimitExceededError,
    InvalidArgumentError,
    ProtocolError,
    ToolError,
    ToolgateError,
    TransportError,
    UnhandledToolCallsError,
    UnknownToolError,
    VendorError,
)
from .loop import DEFAULT_MAX_HOPS, ChatConfig, ConversationLoop
from .models import (
    NO_RESPONSE,
    ChatMessage,
    FinalAnswer,
    Role,
    ToolInvocationRequest,
    ToolResult,
    ToolSpec,
)
from .tools import RemoteToolService, ToolDef, define_tool, random_int_tool

__version__ = "0.1.0"

__all__ = [
    # Tools
    "RemoteToolService",
    "ToolDef",
    "define_tool",
    "random_int_tool",
    # Loop
    "ConversationLoop",
    "ChatConfig",
    "DEFAULT_MAX_HOPS",
    # Adapters
    "ProviderAdapter",
    "AdapterConfig",
    "OpenAIAdapter",
    "GeminiAdapter",
    "ClaudeAdapter",
    "get_adapter",
    # Clients
    "GatewayToolClient",
    "LocalToolClient",
    # Models
    "ChatMessage",
    "Role",
    "ToolSpec",
    "ToolInvocationRequest",
    "ToolResult",
    "FinalAnswer",
    "NO_RESPONSE",
    # Exceptions
    "ToolgateError",
    "ProtocolError",
    "BadSessionError",
    "ApplicationError",
    "ToolError",
    "UnknownToolError",
    "InvalidArgumentError",
    "VendorError",
    "HopLimitExceededError",
    "UnhandledToolCallsError",
    "TransportError",
]
