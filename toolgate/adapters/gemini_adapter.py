"""Google Gemini ``generateContent`` adapter.

Wire format:
  - conversation turns live in ``contents`` with roles ``user`` / ``model``
    and text inside ``parts``
  - tools are grouped under ``[{"functionDeclarations": [...]}]``
  - the model asks for tools with ``functionCall`` parts; older models do not
    attach an id, so results are matched by function name and position
  - results go back as a ``user`` turn holding ``functionResponse`` parts
"""

import logging
from typing import Any, Optional

from toolgate.adapters.base import ProviderAdapter, is_object_list
from toolgate.exceptions import InvalidArgumentError, VendorError
from toolgate.models import (
    ChatMessage,
    Decoded,
    FinalAnswer,
    Role,
    ToolInvocationRequest,
    ToolResult,
    ToolSpec,
)

logger = logging.getLogger("toolgate.adapters.gemini")

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


def tools_to_gemini_format(tools: list[ToolSpec]) -> list[dict]:
    """Convert tool specs to Gemini function declarations."""
    return [
        {
            "functionDeclarations": [
                {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                }
                for t in tools
            ]
        }
    ]


def _function_call_id(turn: dict[str, Any]) -> Optional[str]:
    for part in turn.get("parts", []):
        call = part.get("functionCall")
        if call:
            return call.get("id")
    return None


class GeminiAdapter(ProviderAdapter):
    """Adapter for the Gemini REST API."""

    provider = "gemini"
    label = "Gemini"
    api_key_env = "GEMINI_API_KEY"
    default_model = "gemini-2.0-flash-lite"
    default_endpoint = GEMINI_API_BASE

    def url(self) -> str:
        base = (self._config.endpoint or self.default_endpoint).rstrip("/")
        return f"{base}/{self.model}:generateContent"

    def headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": api_key}

    def seed(self, history: list[ChatMessage], prompt: str) -> list[dict[str, Any]]:
        state = [
            {
                "role": "model" if m.role == Role.ASSISTANT else "user",
                "parts": [{"text": m.content}],
            }
            for m in history
        ]
        state.append({"role": "user", "parts": [{"text": prompt}]})
        return state

    def encode_request(
        self, state: list[dict[str, Any]], tools: list[ToolSpec]
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"contents": list(state)}
        if tools:
            request["tools"] = tools_to_gemini_format(tools)
        if self.system_prompt:
            request["systemInstruction"] = {"parts": [{"text": self.system_prompt}]}
        return request

    def decode_response(self, response: dict[str, Any]) -> Decoded:
        if not isinstance(response, dict):
            raise self._malformed()
        candidates = response.get("candidates") or []
        if not is_object_list(candidates):
            raise self._malformed()
        if not candidates:
            raise VendorError("No response from Gemini", provider=self.provider)

        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise self._malformed()
        parts = content.get("parts") or []
        if not is_object_list(parts):
            raise self._malformed()
        calls = [p for p in parts if p.get("functionCall")]
        if not is_object_list([p["functionCall"] for p in calls]):
            raise self._malformed()

        if not calls:
            text = "".join(p["text"] for p in parts if isinstance(p.get("text"), str))
            return FinalAnswer(text or None)

        first = calls[0]["functionCall"]
        name = first.get("name", "")
        arguments = first.get("args") or {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentError(f"Arguments for {name} must be an object", tool_name=name)

        token = first.get("id") or name
        logger.debug("Gemini requested %s (%s), %d call(s) total", name, token, len(calls))

        return ToolInvocationRequest(
            name=name,
            arguments=arguments,
            token=token,
            turn={"role": "model", "parts": [calls[0]]},
            unhandled=[p["functionCall"].get("name", "") for p in calls[1:]],
        )

    def encode_tool_result(
        self, result: ToolResult, invocation: ToolInvocationRequest
    ) -> list[dict[str, Any]]:
        response: dict[str, Any] = {
            "name": invocation.name,
            "response": {"result": result.content},
        }
        if _function_call_id(invocation.turn) is not None:
            response["id"] = result.token
        return [
            invocation.turn,
            {"role": "user", "parts": [{"functionResponse": response}]},
        ]
