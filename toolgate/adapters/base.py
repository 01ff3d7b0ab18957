"""Base adapter for vendor chat endpoints.

Each adapter speaks one vendor's wire format: it seeds the vendor-native
conversation state, encodes requests, decodes responses into either a
:class:`~toolgate.models.FinalAnswer` or a
:class:`~toolgate.models.ToolInvocationRequest`, and frames tool results the
way the vendor expects them threaded back.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from toolgate.exceptions import TransportError, VendorError
from toolgate.models import (
    ChatMessage,
    Decoded,
    ToolInvocationRequest,
    ToolResult,
    ToolSpec,
)

logger = logging.getLogger("toolgate.adapters")

DEFAULT_TIMEOUT = 60.0


def is_object_list(value: Any) -> bool:
    """True if *value* is a list whose items are all JSON objects."""
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


@dataclass
class AdapterConfig:
    """Configuration for provider adapters.

    Attributes:
        model: Vendor model name. Each adapter has its own default.
        api_key: Vendor credential. Falls back to the adapter's environment
            variable when omitted.
        endpoint: Override for the vendor endpoint URL.
        system_prompt: Optional system instruction. Each adapter has its own
            default.
        max_tokens: Output token cap, sent where the vendor requires it.
        timeout: Seconds before an outbound call is abandoned.
        log_requests: Whether to log each outbound request at DEBUG.
        on_error: Optional callback for vendor call failures. Signature:
            (error: Exception, context: dict) -> None
    """

    model: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: int = 1024
    timeout: float = DEFAULT_TIMEOUT
    log_requests: bool = True
    on_error: Optional[Callable[[Exception, dict[str, Any]], None]] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ProviderAdapter:
    """Base class for provider adapters.

    Subclasses implement the four encoding hooks; this base class performs
    the HTTP call and error normalization. No retries are attempted.
    """

    provider = ""
    label = ""
    api_key_env = ""
    default_model = ""
    default_endpoint = ""
    default_system_prompt: Optional[str] = None

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the adapter.

        Args:
            config: Optional adapter configuration. Uses defaults if not provided.
            http_client: Optional shared ``httpx.AsyncClient``. A short-lived
                client is opened per call when omitted.
        """
        self._config = config or AdapterConfig()
        self._http = http_client

    @property
    def config(self) -> AdapterConfig:
        """The adapter configuration."""
        return self._config

    @property
    def model(self) -> str:
        return self._config.model or self.default_model

    @property
    def system_prompt(self) -> Optional[str]:
        if self._config.system_prompt is not None:
            return self._config.system_prompt
        return self.default_system_prompt

    @property
    def api_key(self) -> Optional[str]:
        return self._config.api_key or os.environ.get(self.api_key_env)

    # -----------------------------------------------------------------------
    # Wire format hooks
    # -----------------------------------------------------------------------

    def seed(self, history: list[ChatMessage], prompt: str) -> list[dict[str, Any]]:
        """Vendor-native conversation state for *history* plus *prompt*."""
        raise NotImplementedError

    def encode_request(
        self, state: list[dict[str, Any]], tools: list[ToolSpec]
    ) -> dict[str, Any]:
        """Vendor request body for the conversation so far."""
        raise NotImplementedError

    def decode_response(self, response: dict[str, Any]) -> Decoded:
        """Final answer or first tool invocation carried by *response*."""
        raise NotImplementedError

    def encode_tool_result(
        self, result: ToolResult, invocation: ToolInvocationRequest
    ) -> list[dict[str, Any]]:
        """Continuation fragment answering *invocation* with *result*."""
        raise NotImplementedError

    def url(self) -> str:
        return self._config.endpoint or self.default_endpoint

    def headers(self, api_key: str) -> dict[str, str]:
        raise NotImplementedError

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------

    def _require_api_key(self) -> str:
        key = self.api_key
        if not key:
            raise VendorError(f"{self.api_key_env} is not set", provider=self.provider)
        return key

    async def send(self, request: dict[str, Any]) -> dict[str, Any]:
        """POST *request* to the vendor and return the decoded JSON body.

        Raises:
            VendorError: Missing credential, non-success status or a body
                that is not JSON.
            TransportError: The vendor could not be reached.
        """
        api_key = self._require_api_key()
        url = self.url()
        request_id = self._generate_id()

        if self._config.log_requests:
            logger.debug(
                "%s request %s: model=%s messages=%d",
                self.provider,
                request_id,
                request.get("model", self.model),
                len(request.get("messages", request.get("contents", []))),
            )

        try:
            if self._http is not None:
                response = await self._http.post(
                    url, json=request, headers=self.headers(api_key)
                )
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout) as client:
                    response = await client.post(
                        url, json=request, headers=self.headers(api_key)
                    )
        except httpx.TransportError as e:
            self._handle_error(e, {"phase": "send", "request_id": request_id})
            raise TransportError(f"{self.label} request failed: {e}") from e

        if not response.is_success:
            error = VendorError(
                f"{self.label} returned HTTP {response.status_code}: {response.text[:500]}",
                provider=self.provider,
                status_code=response.status_code,
            )
            logger.warning(
                "%s request %s failed with HTTP %d",
                self.provider,
                request_id,
                response.status_code,
            )
            self._handle_error(error, {"phase": "response", "request_id": request_id})
            raise error

        try:
            body = response.json()
        except ValueError:
            raise VendorError(
                f"{self.label} returned a non-JSON body", provider=self.provider
            ) from None
        if not isinstance(body, dict):
            raise self._malformed()
        return body

    async def _call_sdk(self, create: Callable[..., Any], request: dict[str, Any], sdk: Any) -> dict[str, Any]:
        """Call a vendor SDK ``create`` method and normalize its errors.

        *sdk* is the imported SDK module; both the openai and anthropic
        packages expose ``APIConnectionError`` and ``APIStatusError``.
        """
        try:
            response = create(**request)
            if asyncio.iscoroutine(response):
                response = await response
        except sdk.APIConnectionError as e:
            self._handle_error(e, {"phase": "send"})
            raise TransportError(f"{self.label} request failed: {e}") from e
        except sdk.APIStatusError as e:
            self._handle_error(e, {"phase": "response"})
            raise VendorError(
                f"{self.label} returned HTTP {e.status_code}: {e.message}",
                provider=self.provider,
                status_code=e.status_code,
            ) from e

        if hasattr(response, "model_dump"):
            return response.model_dump()
        return dict(response)

    def _handle_error(self, error: Exception, context: dict[str, Any]) -> None:
        """Handle adapter errors.

        If an on_error callback is configured, call it. Failures inside the
        callback are ignored so they cannot mask the original error.
        """
        if self._config.on_error:
            try:
                self._config.on_error(error, context)
            except Exception:
                pass

    def _malformed(self) -> VendorError:
        return VendorError(f"Malformed response from {self.label}", provider=self.provider)

    def _generate_id(self) -> str:
        """Generate a unique ID for tracking."""
        return str(uuid.uuid4())
