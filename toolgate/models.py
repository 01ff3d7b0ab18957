"""
Toolgate - Data models shared by the conversation loop and the adapters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

NO_RESPONSE = "(no response)"


class Role(str, Enum):
    """Role of a canonical chat message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    """Provider-independent chat turn as exchanged with the UI."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(role=Role(data["role"]), content=str(data.get("content", "")))


@dataclass
class ToolSpec:
    """Provider-neutral description of a callable tool."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class ToolInvocationRequest:
    """A vendor's request to run a tool before the conversation can continue.

    ``token`` is the correlation token the vendor uses to match the result,
    ``turn`` is the vendor-native assistant turn that carried the request (it
    is echoed back ahead of the tool result) and ``unhandled`` names any other
    tool calls the same response asked for.
    """

    name: str
    arguments: dict[str, Any]
    token: str
    turn: dict[str, Any] = field(default_factory=dict)
    unhandled: list[str] = field(default_factory=list)


@dataclass
class ToolResult:
    """Text output of a tool plus the token of the invocation it answers."""

    token: str
    content: str
    name: Optional[str] = None


@dataclass
class FinalAnswer:
    """Plain text answer that ends a conversation turn."""

    text: Optional[str] = None

    @property
    def content(self) -> str:
        return self.text or NO_RESPONSE


Decoded = Union[FinalAnswer, ToolInvocationRequest]
