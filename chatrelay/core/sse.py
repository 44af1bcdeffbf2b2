"""Server-Sent-Events framing shared by the relay and its clients.

Network reads hand over text in arbitrary slices, so a ``data: {...}`` frame can
arrive split in the middle of a line or of its JSON payload.  The helpers here
turn such slices back into whole lines (:class:`ChunkReassembler`), pull
content deltas out of those lines (:class:`EventStreamDecoder`) and compose the
two over a sync or async source of chunks (:func:`iter_deltas`,
:func:`aiter_deltas`).
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import (
    AsyncIterable,
    AsyncIterator,
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
DONE_FRAME = f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"


class AbortSignal(Protocol):
    def is_set(self) -> bool: ...


class ChunkReassembler:
    """Buffer the tail of a text stream until it forms a complete line."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def residual(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> List[str]:
        """Append ``chunk`` and return every line it completed, in order."""

        self._buffer += chunk
        parts = self._buffer.split("\n")
        self._buffer = parts.pop()
        return parts

    def close(self) -> str:
        """Signal end of input and return whatever was left unterminated."""

        residual = self._buffer
        self._buffer = ""
        if residual.strip():
            logger.warning(
                "Stream ended with %d unterminated characters; transfer was likely truncated",
                len(residual),
            )
        return residual

    def reset(self) -> None:
        self._buffer = ""


class StreamDecodeSkip(ValueError):
    """A ``data:`` frame that could not be turned into a delta."""

    def __init__(self, payload: str, reason: str) -> None:
        super().__init__(f"{reason}: {payload[:80]!r}")
        self.payload = payload
        self.reason = reason


class EventStreamDecoder:
    """Extract ``choices[0].delta.content`` from SSE lines.

    Frames whose payload is not valid JSON are dropped rather than raised;
    ``skipped`` and the optional ``on_skip`` hook keep those drops visible.
    """

    def __init__(self, on_skip: Optional[Callable[[StreamDecodeSkip], None]] = None) -> None:
        self.on_skip = on_skip
        self.done = False
        self.frames = 0
        self.deltas = 0
        self.skipped = 0

    def decode(self, line: str) -> Optional[str]:
        line = line.strip()
        if not line or self.done:
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        self.frames += 1
        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return None

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            self._skip(payload, "invalid JSON")
            return None

        try:
            delta = data["choices"][0]["delta"]
        except (KeyError, IndexError, TypeError):
            return None

        content = delta.get("content") if isinstance(delta, dict) else None
        if not isinstance(content, str) or not content:
            return None

        self.deltas += 1
        return content

    def _skip(self, payload: str, reason: str) -> None:
        self.skipped += 1
        skip = StreamDecodeSkip(payload, reason)
        logger.debug("Skipping stream frame: %s", skip)
        if self.on_skip is not None:
            self.on_skip(skip)


def iter_text_chunks(chunks: Iterable[bytes], encoding: str = "utf-8") -> Iterator[str]:
    """Decode byte chunks without splitting multi-byte characters."""

    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    for chunk in chunks:
        text = decoder.decode(chunk)
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


def iter_deltas(
    chunks: Iterable[str],
    *,
    decoder: Optional[EventStreamDecoder] = None,
    abort: Optional[AbortSignal] = None,
) -> Iterator[str]:
    """Lazily turn text chunks of an SSE body into content deltas."""

    decoder = decoder or EventStreamDecoder()
    reassembler = ChunkReassembler()

    for chunk in chunks:
        if abort is not None and abort.is_set():
            reassembler.reset()
            return
        for line in reassembler.feed(chunk):
            if abort is not None and abort.is_set():
                reassembler.reset()
                return
            delta = decoder.decode(line)
            if delta:
                yield delta
            if decoder.done:
                reassembler.reset()
                return

    reassembler.close()


async def aiter_deltas(
    chunks: AsyncIterable[str],
    *,
    decoder: Optional[EventStreamDecoder] = None,
    abort: Optional[AbortSignal] = None,
) -> AsyncIterator[str]:
    """Async counterpart of :func:`iter_deltas`; each read is a suspension point."""

    decoder = decoder or EventStreamDecoder()
    reassembler = ChunkReassembler()

    async for chunk in chunks:
        if abort is not None and abort.is_set():
            reassembler.reset()
            return
        for line in reassembler.feed(chunk):
            if abort is not None and abort.is_set():
                reassembler.reset()
                return
            delta = decoder.decode(line)
            if delta:
                yield delta
            if decoder.done:
                reassembler.reset()
                return

    reassembler.close()
