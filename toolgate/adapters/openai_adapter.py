"""OpenAI chat completions adapter.

Wire format:
  - tools are listed as ``{"type": "function", "function": {...}}``
  - the model asks for tools through ``message.tool_calls``; each call has an
    ``id`` and JSON-encoded ``arguments``
  - results are threaded back as ``{"role": "tool", "tool_call_id": id}``
    messages, matched by id

By default requests go straight to the REST endpoint through httpx. An
``openai.OpenAI`` / ``openai.AsyncOpenAI`` client can be passed instead:

    from openai import AsyncOpenAI
    from toolgate.adapters import OpenAIAdapter

    adapter = OpenAIAdapter(openai_client=AsyncOpenAI())
"""

import json
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

logger = logging.getLogger("toolgate.adapters.openai")


def _check_openai_installed() -> None:
    """Check if the openai package is installed."""
    try:
        import openai  # noqa: F401
    except ImportError:
        raise ImportError(
            "Passing openai_client requires the 'openai' package. "
            "Install it with: pip install toolgate[openai]"
        ) from None


def tools_to_openai_format(tools: list[ToolSpec]) -> list[dict]:
    """Convert tool specs to OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters,
            },
        }
        for t in tools
    ]


class OpenAIAdapter(ProviderAdapter):
    """Adapter for the OpenAI chat completions API."""

    provider = "openai"
    label = "OpenAI"
    api_key_env = "OPENAI_API_KEY"
    default_model = "gpt-4.1-nano"
    default_endpoint = "https://api.openai.com/v1/chat/completions"
    default_system_prompt = "You are a helpful assistant."

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        openai_client: Any = None,
    ):
        if openai_client is not None:
            _check_openai_installed()
        super().__init__(config, http_client)
        self._openai = openai_client

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def seed(self, history: list[ChatMessage], prompt: str) -> list[dict[str, Any]]:
        state: list[dict[str, Any]] = []
        if self.system_prompt:
            state.append({"role": "system", "content": self.system_prompt})
        state.extend(m.to_dict() for m in history)
        state.append({"role": "user", "content": prompt})
        return state

    def encode_request(
        self, state: list[dict[str, Any]], tools: list[ToolSpec]
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"model": self.model, "messages": list(state)}
        if tools:
            request["tools"] = tools_to_openai_format(tools)
            request["tool_choice"] = "auto"
        return request

    def decode_response(self, response: dict[str, Any]) -> Decoded:
        if not isinstance(response, dict):
            raise self._malformed()
        choices = response.get("choices") or []
        if not is_object_list(choices):
            raise self._malformed()
        message = choices[0].get("message") if choices else None
        if not message:
            raise VendorError("No response from OpenAI", provider=self.provider)
        if not isinstance(message, dict):
            raise self._malformed()

        tool_calls = message.get("tool_calls") or []
        if not is_object_list(tool_calls):
            raise self._malformed()
        if not tool_calls:
            return FinalAnswer(message.get("content"))

        functions = [c.get("function") or {} for c in tool_calls]
        if not is_object_list(functions):
            raise self._malformed()

        call, function = tool_calls[0], functions[0]
        name = function.get("name", "")
        raw_arguments = function.get("arguments") or "{}"
        try:
            arguments = (
                json.loads(raw_arguments) if isinstance(raw_arguments, str) else raw_arguments
            )
        except json.JSONDecodeError:
            raise InvalidArgumentError(
                f"Malformed arguments for {name}: {raw_arguments[:200]}", tool_name=name
            ) from None
        if not isinstance(arguments, dict):
            raise InvalidArgumentError(f"Arguments for {name} must be an object", tool_name=name)

        token = call.get("id") or self._generate_id()
        logger.debug("OpenAI requested %s (%s), %d call(s) total", name, token, len(tool_calls))

        # only the honored call is echoed; the others never get a result
        turn = {
            "role": "assistant",
            "content": message.get("content"),
            "tool_calls": [
                {
                    "id": token,
                    "type": "function",
                    "function": {"name": name, "arguments": json.dumps(arguments)},
                }
            ],
        }
        return ToolInvocationRequest(
            name=name,
            arguments=arguments,
            token=token,
            turn=turn,
            unhandled=[f.get("name", "") for f in functions[1:]],
        )

    def encode_tool_result(
        self, result: ToolResult, invocation: ToolInvocationRequest
    ) -> list[dict[str, Any]]:
        return [
            invocation.turn,
            {"role": "tool", "tool_call_id": result.token, "content": result.content},
        ]

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        if self._openai is None:
            return await super().send(request)

        import openai

        return await self._call_sdk(self._openai.chat.completions.create, request, openai)
