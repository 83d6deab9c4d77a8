import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from .errors import DecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


class SSEDecoder:
    """Incremental decoder for a server-sent-event byte stream.

    Bytes may arrive split at any offset, including inside a multi-byte
    UTF-8 sequence or inside a line. Only complete lines are inspected; the
    unterminated tail stays buffered until more bytes (or the end) arrive.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[str]:
        """Consume one read and return the payloads of the lines it completed."""
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        payloads = []
        for line in lines:
            payload = _payload_of(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def close(self) -> str:
        """Signal end of input and return the discarded, unterminated remainder."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if remainder.strip():
            logger.warning(
                "Stream ended mid-line, dropping %d unterminated chars", len(remainder)
            )
        return remainder


def _payload_of(line: str) -> str | None:
    line = line.removesuffix("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    if not payload.strip():
        return None
    return payload


async def iter_sse_payloads(byte_stream: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield the `data:` payload of each complete line in the stream."""
    decoder = SSEDecoder()
    async for chunk in byte_stream:
        for payload in decoder.feed(chunk):
            yield payload
    decoder.close()


def parse_payload(payload: str) -> dict[str, Any]:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Malformed event payload: {e}") from e


async def iter_sse_json(byte_stream: AsyncIterable[bytes]) -> AsyncIterator[dict[str, Any]]:
    """Yield each payload parsed as JSON, skipping payloads that do not parse."""
    async for payload in iter_sse_payloads(byte_stream):
        try:
            yield parse_payload(payload)
        except DecodeError as e:
            logger.warning("Skipping event: %s", e)
