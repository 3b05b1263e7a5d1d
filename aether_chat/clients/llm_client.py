"""
Gateway HTTP client for streamed chat completions.

Opens one ``POST /chat/completions`` stream per turn over a pooled
``httpx.AsyncClient`` and hands the raw byte stream to the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from aether_chat.chat.cancellation import CancellationScope
from aether_chat.chat.models import ChatCompletionRequest
from aether_chat.config import Configuration
from aether_chat.exceptions import GatewayStatusError, GatewayStreamError

logger = logging.getLogger(__name__)

_ERROR_BODY_LOG_LIMIT = 1000


class LLMClient:
    """Streaming client for an OpenAI-compatible completion gateway."""

    def __init__(
        self,
        configuration: Configuration,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.configuration = configuration
        self._gateway_config = configuration.get_gateway_config()
        self._api_key = configuration.gateway_api_key

        # Pooled client; a transport may be injected for tests
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=self._gateway_config["base_url"],
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=self._gateway_config["request_timeout_seconds"],
            http2=True,
            limits=httpx.Limits(
                max_connections=self._gateway_config["max_connections"],
                max_keepalive_connections=self._gateway_config["max_keepalive_connections"],
                keepalive_expiry=self._gateway_config["keepalive_expiry_seconds"],
            ),
            transport=transport,
            trust_env=False,
        )
        logger.info(f"LLM client initialized for gateway: {self._gateway_config['base_url']}")

    @property
    def app_id(self) -> str:
        return self._gateway_config["app_id"]

    @property
    def default_model(self) -> str:
        return self._gateway_config["model"]

    def _build_payload(self, request: ChatCompletionRequest) -> dict[str, Any]:
        """Serialize the request, dropping unset fields; ``stream`` is always on."""
        payload = request.model_dump(exclude_none=True)
        payload["stream"] = True
        return payload

    @asynccontextmanager
    async def stream_chat(
        self,
        request: ChatCompletionRequest,
        scope: CancellationScope | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streamed completion and yield the accepted response.

        Raises:
            GatewayStatusError: Non-2xx status, carrying status and body text.
            GatewayStreamError: Transport failure while connecting.
            GenerationCancelled: The scope was cancelled while connecting.
        """
        payload = self._build_payload(request)
        start_time = time.monotonic()
        logger.info("→ Gateway: POST /chat/completions model=%s", request.model)

        http_request = self.client.build_request(
            "POST",
            "/chat/completions",
            json=payload,
            headers={"Accept": "text/event-stream", "Accept-Encoding": "identity"},
        )

        try:
            sending = self.client.send(http_request, stream=True)
            response = await (scope.guard(sending) if scope is not None else sending)
            try:
                duration_ms = (time.monotonic() - start_time) * 1000
                logger.info(
                    "← Gateway: HTTP %d in %.2fms", response.status_code, duration_ms
                )

                if not response.is_success:
                    error_bytes = await response.aread()
                    error_text = error_bytes.decode("utf-8", errors="replace")
                    logger.error(
                        "Response body: %s", error_text[:_ERROR_BODY_LOG_LIMIT]
                    )
                    raise GatewayStatusError(response.status_code, error_text)

                content_type = response.headers.get("content-type", "")
                if content_type and "event-stream" not in content_type:
                    logger.warning(f"Unexpected content-type: {content_type}, proceeding anyway")

                yield response
            finally:
                await response.aclose()
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during streaming: {e}")
            logger.error(f"HTTP error type: {type(e).__name__}")
            raise GatewayStreamError(f"HTTP error: {e!s}") from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
        logger.info("LLM client closed")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.close()
