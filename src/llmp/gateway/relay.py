"""Response relay: copy an upstream response back to the client.

Non-streaming responses are copied verbatim. Streaming responses are split
into lines and each line is written as its own chunk, so the client sees
every SSE line as soon as the upstream produces it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Mapping
from contextlib import aclosing
from typing import Protocol

import aiohttp
from aiohttp import hdrs, web
from multidict import CIMultiDict

from llmp.gateway.errors import (
    LineTooLongError,
    StreamingNotSupportedError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_MAX_LINE_SIZE = 10 * 1024 * 1024

# The relay frames streamed bodies itself
STREAMING_SKIP_HEADERS = frozenset({hdrs.CONTENT_LENGTH.lower(), hdrs.TRANSFER_ENCODING.lower()})


class ChunkSource(Protocol):
    def iter_chunked(self, n: int) -> AsyncIterator[bytes]: ...


class LineWriter(Protocol):
    def write(self, data: bytes) -> Awaitable[None]: ...


def copy_headers(
    source: Mapping[str, str],
    target: CIMultiDict[str],
    streaming: bool,
) -> None:
    """Copy every upstream header, keeping repeated headers.

    When streaming, Content-Length and Transfer-Encoding are left out.
    """
    for key, value in source.items():
        if streaming and key.lower() in STREAMING_SKIP_HEADERS:
            continue
        target.add(key, value)


def ensure_streaming_supported(request: web.Request) -> None:
    """Incremental delivery needs chunked transfer coding, i.e. HTTP/1.1."""
    if request.version < aiohttp.HttpVersion11:
        raise StreamingNotSupportedError("Streaming not supported")


def _content_end(buffer: bytearray, start: int, end: int) -> int:
    """End of the line content in buffer[start:end], excluding a trailing CR."""
    if end > start and buffer[end - 1] == 0x0D:
        return end - 1
    return end


async def iter_lines(
    stream: ChunkSource,
    max_line_size: int = DEFAULT_MAX_LINE_SIZE,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield newline-delimited lines from a chunked byte stream.

    Line terminators (`\\n` or `\\r\\n`) are stripped and do not count
    towards max_line_size. A final line without a terminator is still
    yielded.

    Raises:
        LineTooLongError: A single line grew beyond max_line_size bytes.
    """
    buffer = bytearray()
    async for chunk in stream.iter_chunked(chunk_size):
        # Bytes already in the buffer are known to hold no newline
        scan_from = len(buffer)
        buffer.extend(chunk)
        start = 0
        while (newline := buffer.find(b"\n", scan_from)) >= 0:
            end = _content_end(buffer, start, newline)
            if end - start > max_line_size:
                raise LineTooLongError(f"line exceeds {max_line_size} bytes")
            yield bytes(buffer[start:end])
            start = scan_from = newline + 1
        del buffer[:start]
        if _content_end(buffer, 0, len(buffer)) > max_line_size:
            raise LineTooLongError(f"line exceeds {max_line_size} bytes")

    if buffer:
        yield bytes(buffer[: _content_end(buffer, 0, len(buffer))])


async def forward_lines(
    lines: AsyncIterable[bytes],
    writer: LineWriter,
    trace_id: str = "-",
) -> int:
    """Write each line plus a newline as a separate write.

    Stops at the first failed write (client went away) without retrying.

    Returns:
        Number of lines delivered.
    """
    count = 0
    async for line in lines:
        logger.debug("[%s] Streaming line: %s", trace_id, line[:200])
        try:
            await writer.write(line + b"\n")
        except ConnectionResetError:
            logger.info("[%s] Client disconnected after %d lines", trace_id, count)
            break
        count += 1
    return count


async def relay_response(
    request: web.Request,
    upstream: aiohttp.ClientResponse,
    trace_id: str = "-",
) -> web.StreamResponse:
    """Relay a non-streaming upstream response byte-for-byte.

    The body is read in full before anything is sent, so a failed read
    still yields a clean 502.
    """
    try:
        body = await upstream.read()
    except (aiohttp.ClientError, TimeoutError) as e:
        logger.error("[%s] Error reading upstream response: %s", trace_id, e)
        raise UpstreamUnavailableError("Error forwarding request") from e

    response = web.StreamResponse(status=upstream.status, reason=upstream.reason)
    copy_headers(upstream.headers, response.headers, streaming=False)

    if hdrs.TRANSFER_ENCODING in response.headers:
        # The body arrived de-chunked; let the server chunk it again.
        del response.headers[hdrs.TRANSFER_ENCODING]
        response.headers.popall(hdrs.CONTENT_LENGTH, None)

    await response.prepare(request)
    try:
        if body:
            await response.write(body)
        await response.write_eof()
    except ConnectionResetError:
        logger.info("[%s] Client disconnected before the response was sent", trace_id)
    return response


async def relay_stream(
    request: web.Request,
    upstream: aiohttp.ClientResponse,
    trace_id: str = "-",
    max_line_size: int = DEFAULT_MAX_LINE_SIZE,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> web.StreamResponse:
    """Relay a streamed upstream response line by line.

    Upstream read errors end the relay; whatever was already written stays
    delivered.
    """
    ensure_streaming_supported(request)

    response = web.StreamResponse(status=upstream.status, reason=upstream.reason)
    copy_headers(upstream.headers, response.headers, streaming=True)
    response.enable_chunked_encoding()
    await response.prepare(request)

    try:
        async with aclosing(iter_lines(upstream.content, max_line_size, chunk_size)) as lines:
            count = await forward_lines(lines, response, trace_id)
    except (aiohttp.ClientError, TimeoutError, LineTooLongError) as e:
        logger.warning("[%s] Upstream stream error: %s", trace_id, e)
    else:
        logger.info("[%s] Streaming completed, %d lines forwarded", trace_id, count)

    try:
        await response.write_eof()
    except ConnectionResetError:
        logger.debug("[%s] Client closed connection before end of stream", trace_id)
    return response
