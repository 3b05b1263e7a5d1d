"""
Cooperative cancellation for one in-flight generation.

A ``CancellationScope`` is shared by the stream controller, the gateway
request and the frame read loop. ``cancel()`` is synchronous; every awaited
suspension point routed through ``guard()`` races against it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import TypeVar

from aether_chat.exceptions import GenerationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationScope:
    """Abort handle for a single turn."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Stream aborted by user") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug("Cancellation requested: %s", reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled(self._reason or "Generation stopped")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the scope is cancelled first.

        Raises:
            GenerationCancelled: If cancellation wins the race, or had already
                been requested. The pending operation is cancelled and awaited.
        """
        if self._event.is_set():
            # Never started; close it so no "never awaited" warning is emitted
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        operation = asyncio.ensure_future(awaitable)
        stop_waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait(
                {operation, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            operation.cancel()
            raise
        finally:
            stop_waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stop_waiter

        if self._event.is_set():
            if not operation.done():
                operation.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await operation
            self.raise_if_cancelled()

        return operation.result()
