"""Web search pre-step client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from aether_chat.store.models import SearchResults

logger = logging.getLogger(__name__)


class SearchClient:
    """POSTs ``{"query": ...}`` to a search endpoint and returns its results."""

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport, trust_env=False)

    @classmethod
    def from_config(cls, search_config: dict[str, Any]) -> SearchClient | None:
        """Build a client when search is enabled and an endpoint is set."""
        if not search_config.get("enabled") or not search_config.get("url"):
            return None
        return cls(search_config["url"], timeout=search_config.get("timeout_seconds", 15.0))

    async def search(self, query: str) -> SearchResults:
        """
        Raises:
            httpx.HTTPError: On transport failure or non-2xx status.
            pydantic.ValidationError: If the response is not a results object.
        """
        logger.info("→ Search: query length=%d", len(query))
        response = await self.client.post(self.url, json={"query": query})
        response.raise_for_status()
        results = SearchResults.model_validate(response.json())
        logger.info("← Search: %d results", len(results.results))
        return results

    async def close(self) -> None:
        await self.client.aclose()
