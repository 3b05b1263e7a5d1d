"""Clients package containing the gateway and search clients."""

from __future__ import annotations

from .llm_client import LLMClient
from .search_client import SearchClient

__all__ = ["LLMClient", "SearchClient"]
