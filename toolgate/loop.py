"""
Toolgate - Conversation loop.

Drives one chat turn against a vendor: send the conversation, run the tool
the vendor asks for, thread the result back and repeat until the vendor
answers in plain text. The number of tool executions per turn is capped.

Usage:
    ```python
    from toolgate import ChatConfig, ConversationLoop

    config = ChatConfig(provider="gemini")
    loop = ConversationLoop(config.build_adapter(), config.build_tools())
    history = await loop.reply("pick a number under 10", history=[])
    ```
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from .adapters import ADAPTERS, AdapterConfig, ProviderAdapter, get_adapter
from .client import GatewayToolClient, LocalToolClient
from .exceptions import (
    HopLimitExceededError,
    ToolgateError,
    UnhandledToolCallsError,
)
from .models import ChatMessage, FinalAnswer, Role, ToolResult, ToolSpec

logger = logging.getLogger("toolgate.loop")

DEFAULT_MAX_HOPS = 3


class ToolClient(Protocol):
    async def list_tools(self) -> list[ToolSpec]: ...

    async def invoke(self, name: str, arguments: Optional[dict[str, Any]] = None) -> str: ...


@dataclass
class ChatConfig:
    """Configuration for a chat session."""

    provider: str = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    system_prompt: Optional[str] = None
    max_hops: int = DEFAULT_MAX_HOPS
    timeout: float = 60.0
    tool_endpoint: Optional[str] = None

    def __post_init__(self):
        if self.provider.lower() not in ADAPTERS:
            raise ValueError(f"Unsupported provider: {self.provider}")
        if self.max_hops < 0:
            raise ValueError("max_hops must not be negative")

    @classmethod
    def from_env(cls, provider: Optional[str] = None) -> "ChatConfig":
        """Create configuration from environment variables."""
        provider = provider or os.environ.get("TOOLGATE_PROVIDER", "openai")
        adapter_cls = ADAPTERS.get(provider.lower())
        return cls(
            provider=provider,
            model=os.environ.get("TOOLGATE_MODEL") or None,
            api_key=os.environ.get(adapter_cls.api_key_env) if adapter_cls else None,
            max_hops=int(os.environ.get("TOOLGATE_MAX_HOPS", str(DEFAULT_MAX_HOPS))),
            tool_endpoint=os.environ.get("TOOLGATE_TOOL_ENDPOINT") or None,
        )

    def adapter_config(self) -> AdapterConfig:
        return AdapterConfig(
            model=self.model,
            api_key=self.api_key,
            endpoint=self.endpoint,
            system_prompt=self.system_prompt,
            timeout=self.timeout,
        )

    def build_adapter(self, **kwargs: Any) -> ProviderAdapter:
        return get_adapter(self.provider, config=self.adapter_config(), **kwargs)

    def build_tools(self) -> Union[GatewayToolClient, LocalToolClient]:
        if self.tool_endpoint:
            return GatewayToolClient(self.tool_endpoint, timeout=self.timeout)
        return LocalToolClient()


class ConversationLoop:
    """Runs chat turns for one provider.

    The adapter is chosen once per conversation; the loop itself never
    branches on the vendor.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        tools: ToolClient,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> None:
        if max_hops < 0:
            raise ValueError("max_hops must not be negative")
        self._adapter = adapter
        self._tools = tools
        self._max_hops = max_hops

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    @property
    def max_hops(self) -> int:
        return self._max_hops

    async def run(self, prompt: str, history: Optional[list[ChatMessage]] = None) -> str:
        """Run one turn and return the final answer text.

        Raises:
            HopLimitExceededError: The vendor asked for a tool after
                ``max_hops`` tools had already run.
            UnhandledToolCallsError: The vendor asked for several tools at
                once; the first one was run, the rest went unanswered.
            ApplicationError: A vendor or tool failure aborted the turn.
            TransportError: A vendor or the gateway was unreachable.
        """
        state = self._adapter.seed(list(history or []), prompt)
        tools = await self._tools.list_tools()
        executed = 0

        while True:
            request = self._adapter.encode_request(state, tools)
            response = await self._adapter.send(request)
            decoded = self._adapter.decode_response(response)

            if isinstance(decoded, FinalAnswer):
                logger.debug(
                    "%s answered after %d tool call(s)", self._adapter.provider, executed
                )
                return decoded.content

            if executed >= self._max_hops:
                raise HopLimitExceededError(self._max_hops)

            logger.info("Running tool %s with %s", decoded.name, decoded.arguments)
            output = await self._tools.invoke(decoded.name, decoded.arguments)
            executed += 1

            if decoded.unhandled:
                raise UnhandledToolCallsError(
                    decoded.unhandled, honored=decoded.name, result=output
                )

            result = ToolResult(token=decoded.token, content=output, name=decoded.name)
            state.extend(self._adapter.encode_tool_result(result, decoded))

    async def reply(
        self, prompt: str, history: Optional[list[ChatMessage]] = None
    ) -> list[ChatMessage]:
        """Run one turn and return the updated canonical history.

        Failures never escape: the assistant turn then carries an
        ``Error: ...`` message and earlier turns are returned unchanged.
        """
        history = list(history or [])
        try:
            answer = await self.run(prompt, history)
        except ToolgateError as e:
            logger.warning("%s turn failed: %s", self._adapter.provider, e.message)
            answer = f"Error: {e.message}"
        return history + [
            ChatMessage(Role.USER, prompt),
            ChatMessage(Role.ASSISTANT, answer),
        ]
