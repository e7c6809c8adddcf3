"""Server-Sent Events decoder for chat-completion streams.

Chunks may split a record anywhere, including inside a multi-byte
character. A record is only handed on once its blank-line separator has
actually arrived.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from toolstream.errors import DecodeError

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"
RECORD_SEPARATOR = "\n\n"
DATA_PREFIX = "data:"


class SSEDecoder:
    """Incremental decoder turning raw chunks into JSON payloads."""

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    @property
    def pending(self) -> str:
        """Buffered text that has not formed a complete record yet."""
        return self._buffer

    def feed(self, chunk: str | bytes) -> list[dict]:
        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        # A "\r" left at the end of the previous chunk pairs up here.
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")

        payloads = []
        while RECORD_SEPARATOR in self._buffer:
            record, self._buffer = self._buffer.split(RECORD_SEPARATOR, 1)
            data = self._extract_data(record)
            if data is None:
                continue
            if data == DONE_MARKER:
                self.done = True
                self._buffer = ""
                break
            try:
                payloads.append(self._parse(data))
            except DecodeError as e:
                logger.warning(f"Dropping malformed stream record: {e}")
        return payloads

    @staticmethod
    def _extract_data(record: str) -> str | None:
        record = record.strip()
        if not record.startswith(DATA_PREFIX):
            return None
        lines = [
            line[len(DATA_PREFIX):].strip()
            for line in record.split("\n")
            if line.startswith(DATA_PREFIX)
        ]
        return "\n".join(lines)

    @staticmethod
    def _parse(data: str) -> dict:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise DecodeError(f"{e}: {data[:80]!r}") from e
        if not isinstance(payload, dict):
            raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")
        return payload


async def decode_stream(
    chunks: AsyncIterable[str | bytes],
) -> AsyncIterator[dict]:
    """Yield decoded JSON records until ``[DONE]`` or the transport ends."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
        if decoder.done:
            return
    if decoder.pending.strip():
        logger.debug(
            f"Stream ended with an incomplete record, discarding "
            f"{len(decoder.pending)} chars"
        )
