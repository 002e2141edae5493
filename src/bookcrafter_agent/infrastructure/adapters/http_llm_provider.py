"""Shared HTTP plumbing for the LLM provider adapters.

Concrete adapters only describe their backend: how a request becomes a
request body, how a response body becomes an LlmResponse, which stream
normalizer reads their wire format, and which headers authenticate them.
Everything else lives here:

- Lazy httpx.AsyncClient creation (or an injected client, e.g. for tests)
- Mapping of httpx failures and HTTP status codes into the provider error taxonomy
- Extraction of backend error messages from ``{"error": {...}}`` envelopes
- The streaming loop feeding response lines into a normalizer
- OpenTelemetry spans and request metrics
"""

import json
import logging
import time
from abc import abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx
from opentelemetry import trace

from bookcrafter_agent.application.agents.llm_provider import (
    LlmBackendError,
    LlmConfig,
    LlmProvider,
    LlmProviderError,
    LlmRequest,
    LlmResponse,
    LlmTransportError,
)
from bookcrafter_agent.application.agents.stream_events import StreamEvent
from bookcrafter_agent.domain.models import Message, MessageRole
from bookcrafter_agent.infrastructure.adapters.stream_normalizers import StreamNormalizer
from bookcrafter_agent.observability.metrics import llm_request_count, llm_request_time, llm_tool_calls

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class HttpLlmProvider(LlmProvider):
    """Base class for adapters talking to a JSON-over-HTTP backend."""

    DEFAULT_BASE_URL = ""

    def __init__(self, config: LlmConfig, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the adapter.

        Args:
            config: Provider configuration
            client: Optional pre-built HTTP client; the adapter creates its own otherwise
        """
        super().__init__(config)
        self._base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._client = client

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def provider_name(self) -> str:
        return self.provider_type.value

    @property
    def provider_label(self) -> str:
        return self.provider_type.display_name

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._client

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _answered_call_ids(history: list[Message]) -> set[str]:
        """Ids of tool calls in ``history`` that have a matching tool result.

        Hosted backends reject a transcript where an assistant tool call has
        no result, which happens after a rejection or a stop.
        """
        return {msg.tool_result.tool_call_id for msg in history if msg.role == MessageRole.TOOL_RESULT and msg.tool_result is not None}

    # =========================================================================
    # Backend description (implemented by each adapter)
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        """Request headers. Adapters requiring credentials raise LlmCredentialsError here."""
        return {"Content-Type": "application/json"}

    @abstractmethod
    def _build_request(self, request: LlmRequest, stream: bool) -> tuple[str, dict[str, Any]]:
        """Translate a request into (endpoint, JSON body)."""

    @abstractmethod
    def _parse_response(self, endpoint: str, data: dict[str, Any]) -> LlmResponse:
        """Translate a non-streaming response body."""

    @abstractmethod
    def _create_normalizer(self, endpoint: str) -> StreamNormalizer:
        """Create a fresh normalizer for one streaming response."""

    # =========================================================================
    # Error mapping
    # =========================================================================

    def _error_message(self, detail: str) -> str:
        return f"{self.provider_label} request failed: {detail}"

    def _transport_error(self, error: httpx.RequestError | httpx.InvalidURL) -> LlmTransportError:
        if isinstance(error, httpx.InvalidURL):
            logger.error(f"Invalid {self.provider_label} base URL {self._base_url}: {error}")
            return LlmTransportError(
                message=self._error_message(f"invalid base URL {self._base_url}"),
                error_code=f"{self.provider_name}_invalid_url",
                provider=self.provider_name,
                is_retryable=False,
                details={"url": self._base_url},
            )
        if isinstance(error, httpx.ConnectError):
            logger.error(f"Cannot connect to {self.provider_label} at {self._base_url}: {error}")
            return LlmTransportError(
                message=self._error_message(f"cannot connect to {self._base_url}"),
                error_code=f"{self.provider_name}_unavailable",
                provider=self.provider_name,
                is_retryable=True,
                details={"url": self._base_url},
            )
        if isinstance(error, httpx.TimeoutException):
            logger.error(f"{self.provider_label} request timed out: {error}")
            return LlmTransportError(
                message=self._error_message("request timed out"),
                error_code=f"{self.provider_name}_timeout",
                provider=self.provider_name,
                is_retryable=True,
            )
        logger.error(f"{self.provider_label} request error: {error}")
        return LlmTransportError(
            message=self._error_message(str(error) or type(error).__name__),
            error_code=f"{self.provider_name}_request_error",
            provider=self.provider_name,
            is_retryable=False,
        )

    @staticmethod
    def _extract_error_message(body: Any) -> str | None:
        """Pull a message out of ``{"error": {"message": ...}}`` or ``{"error": "..."}``."""
        if isinstance(body, (str, bytes)):
            try:
                body = json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return None
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("type")
        if isinstance(error, str) and error:
            return error
        return None

    def _status_error(self, status_code: int, body: str, reason: str = "") -> LlmBackendError:
        detail = self._extract_error_message(body) or f"HTTP {status_code}: {reason}".rstrip(": ")
        logger.error(f"{self.provider_label} HTTP error: {status_code} - {body[:500]}")

        if status_code in (401, 403):
            error_code = f"{self.provider_name}_auth_error"
        elif status_code == 404:
            error_code = f"{self.provider_name}_model_not_found"
        elif status_code == 429:
            error_code = f"{self.provider_name}_rate_limited"
        elif status_code >= 500:
            error_code = f"{self.provider_name}_server_error"
        else:
            error_code = f"{self.provider_name}_api_error"

        return LlmBackendError(
            message=self._error_message(detail),
            error_code=error_code,
            provider=self.provider_name,
            is_retryable=status_code == 429 or status_code >= 500,
            details={"status_code": status_code, "model": self.model},
        )

    def _envelope_error(self, detail: str) -> LlmBackendError:
        logger.error(f"{self.provider_label} reported an error: {detail}")
        return LlmBackendError(
            message=self._error_message(detail),
            error_code=f"{self.provider_name}_api_error",
            provider=self.provider_name,
            is_retryable=False,
        )

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    async def _send(self, method: str, endpoint: str, headers: dict[str, str], body: dict[str, Any] | None = None) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, self._url(endpoint), json=body, headers=headers)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise self._transport_error(e) from e

        if response.status_code >= 400:
            raise self._status_error(response.status_code, response.text, response.reason_phrase)

        try:
            data = response.json()
        except ValueError as e:
            raise self._envelope_error("invalid JSON response") from e

        envelope = self._extract_error_message(data)
        if envelope:
            raise self._envelope_error(envelope)
        return data if isinstance(data, dict) else {"data": data}

    async def _post_json(self, endpoint: str, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        return await self._send("POST", endpoint, headers, body)

    async def _get_json(self, endpoint: str, headers: dict[str, str]) -> dict[str, Any]:
        return await self._send("GET", endpoint, headers)

    # =========================================================================
    # LlmProvider implementation
    # =========================================================================

    async def complete(self, request: LlmRequest) -> LlmResponse:
        """Send a non-streaming completion request.

        Raises:
            LlmCredentialsError: If required credentials are missing
            LlmTransportError: If the backend is unreachable or times out
            LlmBackendError: If the backend reports an error
        """
        headers = self._headers()
        endpoint, body = self._build_request(request, stream=False)
        start_time = time.time()
        llm_request_count.add(1, {"model": self.model, "provider": self.provider_name, "has_tools": str(request.has_tools)})

        with tracer.start_as_current_span(f"{self.provider_name}.complete") as span:
            span.set_attribute("llm.provider", self.provider_name)
            span.set_attribute("llm.model", self.model)
            span.set_attribute("llm.history_count", len(request.history))
            span.set_attribute("llm.tool_count", len(request.tools or []))
            logger.debug(f"{self.provider_label} request: endpoint={endpoint}, model={self.model}")

            try:
                data = await self._post_json(endpoint, body, headers)
            except LlmProviderError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", e.message)
                raise

            response = self._parse_response(endpoint, data)
            duration_ms = (time.time() - start_time) * 1000
            llm_request_time.record(duration_ms, {"model": self.model, "provider": self.provider_name})
            span.set_attribute("llm.duration_ms", duration_ms)
            span.set_attribute("llm.finish_reason", response.finish_reason.value)
            span.set_attribute("llm.tool_call_count", len(response.tool_calls))
            for tool_call in response.tool_calls:
                llm_tool_calls.add(1, {"model": self.model, "provider": self.provider_name, "tool_name": tool_call.name})
            return response

    async def stream_complete(self, request: LlmRequest) -> AsyncIterator[StreamEvent]:
        """Send a streaming completion request.

        Failures of any kind end the stream with a single error event.
        """
        try:
            headers = self._headers()
            endpoint, body = self._build_request(request, stream=True)
        except LlmProviderError as e:
            logger.error(f"{self.provider_label} stream request rejected: {e.message}")
            yield StreamEvent.failure(e.message, e.error_code)
            return

        normalizer = self._create_normalizer(endpoint)
        start_time = time.time()
        llm_request_count.add(1, {"model": self.model, "provider": self.provider_name, "has_tools": str(request.has_tools)})

        with tracer.start_as_current_span(f"{self.provider_name}.stream_complete") as span:
            span.set_attribute("llm.provider", self.provider_name)
            span.set_attribute("llm.model", self.model)
            span.set_attribute("llm.history_count", len(request.history))
            span.set_attribute("llm.tool_count", len(request.tools or []))
            logger.info(f"{self.provider_label} stream request: endpoint={endpoint}, model={self.model}, tools={len(request.tools or [])}")

            try:
                client = await self._get_client()
                async with client.stream("POST", self._url(endpoint), json=body, headers=headers) as response:
                    if response.status_code >= 400:
                        error_content = await response.aread()
                        error_text = error_content.decode("utf-8", errors="replace")
                        raise self._status_error(response.status_code, error_text, response.reason_phrase)

                    async for line in response.aiter_lines():
                        for event in normalizer.feed_line(line):
                            yield event
                        if normalizer.terminated:
                            break

                for event in normalizer.finish():
                    yield event

            except LlmProviderError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", e.message)
                for event in normalizer.fail(e.message, e.error_code):
                    yield event
            except (httpx.RequestError, httpx.InvalidURL) as e:
                error = self._transport_error(e)
                span.set_attribute("error", True)
                span.set_attribute("error.message", error.message)
                for event in normalizer.fail(error.message, error.error_code):
                    yield event
            finally:
                duration_ms = (time.time() - start_time) * 1000
                llm_request_time.record(duration_ms, {"model": self.model, "provider": self.provider_name})
                span.set_attribute("llm.duration_ms", duration_ms)
                span.set_attribute("llm.frames_skipped", normalizer.frames_skipped)
                span.set_attribute("llm.tool_call_count", len(normalizer.tool_calls))
                if normalizer.finish_reason is not None:
                    span.set_attribute("llm.finish_reason", normalizer.finish_reason.value)
                for tool_call in normalizer.tool_calls:
                    llm_tool_calls.add(1, {"model": self.model, "provider": self.provider_name, "tool_name": tool_call.name})

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
