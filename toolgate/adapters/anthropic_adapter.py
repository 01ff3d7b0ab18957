"""Anthropic Claude messages adapter.

Wire format:
  - the system prompt is a top-level ``system`` field, not a message
  - tools are listed as ``{"name", "description", "input_schema"}``
  - the model asks for tools with ``tool_use`` content blocks carrying an ``id``
  - results go back in a ``user`` message as ``tool_result`` blocks keyed by
    ``tool_use_id``

An ``anthropic.Anthropic`` / ``anthropic.AsyncAnthropic`` client may be
passed instead of calling the REST endpoint directly:

    from anthropic import AsyncAnthropic
    from toolgate.adapters import ClaudeAdapter

    adapter = ClaudeAdapter(anthropic_client=AsyncAnthropic())
"""

import logging
from typing import Any, Optional

import httpx

from toolgate.adapters.base import AdapterConfig, ProviderAdapter, is_object_list
from toolgate.exceptions import InvalidArgumentError, VendorError
from toolgate.models import (
    ChatMessage,
    Decoded,
    FinalAnswer,
    ToolInvocationRequest,
    ToolResult,
    ToolSpec,
)

logger = logging.getLogger("toolgate.adapters.anthropic")

ANTHROPIC_VERSION = "2023-06-01"


def _check_anthropic_installed() -> None:
    """Check if the anthropic package is installed."""
    try:
        import anthropic  # noqa: F401
    except ImportError:
        raise ImportError(
            "Passing anthropic_client requires the 'anthropic' package. "
            "Install it with: pip install toolgate[anthropic]"
        ) from None


def tools_to_anthropic_format(tools: list[ToolSpec]) -> list[dict]:
    """Convert tool specs to Anthropic tool format."""
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": t.parameters,
        }
        for t in tools
    ]


class ClaudeAdapter(ProviderAdapter):
    """Adapter for the Anthropic messages API."""

    provider = "claude"
    label = "Claude"
    api_key_env = "ANTHROPIC_API_KEY"
    default_model = "claude-3-5-haiku-latest"
    default_endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        anthropic_client: Any = None,
    ):
        if anthropic_client is not None:
            _check_anthropic_installed()
        super().__init__(config, http_client)
        self._anthropic = anthropic_client

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def seed(self, history: list[ChatMessage], prompt: str) -> list[dict[str, Any]]:
        state = [m.to_dict() for m in history]
        state.append({"role": "user", "content": prompt})
        return state

    def encode_request(
        self, state: list[dict[str, Any]], tools: list[ToolSpec]
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self._config.max_tokens,
            "messages": list(state),
        }
        if self.system_prompt:
            request["system"] = self.system_prompt
        if tools:
            request["tools"] = tools_to_anthropic_format(tools)
        return request

    def decode_response(self, response: dict[str, Any]) -> Decoded:
        if not isinstance(response, dict):
            raise self._malformed()
        content = response.get("content")
        if not isinstance(content, list):
            raise VendorError("No response from Claude", provider=self.provider)
        if not is_object_list(content):
            raise self._malformed()

        uses = [b for b in content if b.get("type") == "tool_use"]
        if not uses:
            text = "".join(
                b["text"]
                for b in content
                if b.get("type") == "text" and isinstance(b.get("text"), str)
            )
            return FinalAnswer(text or None)

        first = uses[0]
        name = first.get("name", "")
        arguments = first.get("input") or {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentError(f"Arguments for {name} must be an object", tool_name=name)

        token = first.get("id") or self._generate_id()
        logger.debug("Claude requested %s (%s), %d call(s) total", name, token, len(uses))

        # text blocks are kept, only the honored tool_use block is echoed
        blocks: list[dict[str, Any]] = [
            {"type": "text", "text": b.get("text", "")}
            for b in content
            if b.get("type") == "text" and b.get("text")
        ]
        blocks.append({"type": "tool_use", "id": token, "name": name, "input": arguments})

        return ToolInvocationRequest(
            name=name,
            arguments=arguments,
            token=token,
            turn={"role": "assistant", "content": blocks},
            unhandled=[b.get("name", "") for b in uses[1:]],
        )

    def encode_tool_result(
        self, result: ToolResult, invocation: ToolInvocationRequest
    ) -> list[dict[str, Any]]:
        return [
            invocation.turn,
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.token,
                        "content": result.content,
                    }
                ],
            },
        ]

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        if self._anthropic is None:
            return await super().send(request)

        import anthropic

        return await self._call_sdk(self._anthropic.messages.create, request, anthropic)
