"""Vendor adapters for the conversation loop.

Each adapter speaks one vendor's chat wire format. They share one contract
(``seed`` / ``encode_request`` / ``decode_response`` / ``encode_tool_result``
/ ``send``) because the formats disagree on role names, where tool schemas
live and how tool results are threaded back.

Supported providers:
- OpenAI (chat completions, results matched by ``tool_call_id``)
- Google Gemini (``generateContent``, results matched by function name)
- Anthropic Claude (messages, results matched by ``tool_use_id``)

Example usage:

    from toolgate.adapters import AdapterConfig, get_adapter

    adapter = get_adapter("gemini", config=AdapterConfig(api_key="..."))
"""

from typing import Any, Optional

from toolgate.adapters.anthropic_adapter import ClaudeAdapter
from toolgate.adapters.base import AdapterConfig, ProviderAdapter
from toolgate.adapters.gemini_adapter import GeminiAdapter
from toolgate.adapters.openai_adapter import OpenAIAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
    "claude": ClaudeAdapter,
    "anthropic": ClaudeAdapter,
}


def get_adapter(
    provider: str,
    config: Optional[AdapterConfig] = None,
    **kwargs: Any,
) -> ProviderAdapter:
    """Build the adapter registered under *provider*."""
    try:
        adapter_cls = ADAPTERS[provider.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported provider: {provider}. Choose one of: openai, gemini, claude"
        ) from None
    return adapter_cls(config=config, **kwargs)


__all__ = [
    "ProviderAdapter",
    "AdapterConfig",
    "OpenAIAdapter",
    "GeminiAdapter",
    "ClaudeAdapter",
    "get_adapter",
]
