"""
Server-Sent Event Frame Decoder

Turns the gateway's arbitrarily fragmented byte stream into complete
``data:`` payloads. Payload content is not interpreted here.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator

from .cancellation import CancellationScope

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSEFrameDecoder:
    """
    Incremental line decoder for an SSE body.

    Multi-byte UTF-8 sequences split across chunks are held back by an
    incremental decoder; a trailing partial line waits for the next chunk.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Feed one transport chunk, returning every payload it completed."""
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return self._payloads(lines)

    def flush(self) -> list[str]:
        """Drain whatever is buffered once the transport signals end-of-stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        return self._payloads([remainder])

    @staticmethod
    def _payloads(lines: list[str]) -> list[str]:
        payloads: list[str] = []
        for raw_line in lines:
            line = raw_line.rstrip("\r")
            if not line.strip():
                continue

            if not line.startswith(DATA_PREFIX):
                # event:, id:, retry: and comments are tolerated and skipped
                continue

            data = line[len(DATA_PREFIX):]
            if data.strip() == DONE_SENTINEL:
                continue

            payloads.append(data)
        return payloads


async def _read_next(iterator: AsyncIterator[bytes]) -> bytes | None:
    """Next transport chunk, or ``None`` at end-of-stream."""
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


async def iter_sse_payloads(
    byte_chunks: AsyncIterable[bytes],
    scope: CancellationScope | None = None,
) -> AsyncGenerator[str]:
    """
    Yield complete SSE payloads from a byte stream.

    When a cancellation scope is given, every wait for the next chunk races
    against it and a stop request surfaces as ``GenerationCancelled``.
    """
    decoder = SSEFrameDecoder()
    iterator: AsyncIterator[bytes] = aiter(byte_chunks)
    chunk_count = 0

    while True:
        if scope is not None:
            chunk = await scope.guard(_read_next(iterator))
        else:
            chunk = await _read_next(iterator)
        if chunk is None:
            break

        chunk_count += 1
        for payload in decoder.feed(chunk):
            yield payload

    for payload in decoder.flush():
        yield payload

    logger.debug("← Gateway: byte stream ended after %d chunks", chunk_count)
