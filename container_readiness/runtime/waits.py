from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterable

from container_readiness.runtime.streams import Chunk, LogStream, LogStreamAsync


def duration_to_seconds(value: str) -> float:
    if value.endswith("ms"):
        return float(value[:-2]) / 1000.0
    if value.endswith("s"):
        return float(value[:-1])
    raise ValueError(f"Unsupported duration format: {value}")


def wait_for_message(
    stream: Iterable[Chunk] | Chunk | LogStream,
    message: str,
    *,
    max_buffered_lines: int | None = None,
) -> None:
    """Block until ``message`` appears in ``stream``.

    Raises ``EndOfStreamError`` when the stream closes first and
    ``StreamIoError`` when it cannot be read.
    """
    source = (
        stream
        if isinstance(stream, LogStream)
        else LogStream(stream, max_buffered_lines=max_buffered_lines)
    )
    source.wait_for_message(message)


async def wait_for_message_async(
    stream: AsyncIterable[Chunk] | LogStreamAsync,
    message: str,
    *,
    max_buffered_lines: int | None = None,
) -> None:
    source = (
        stream
        if isinstance(stream, LogStreamAsync)
        else LogStreamAsync(stream, max_buffered_lines=max_buffered_lines)
    )
    await source.wait_for_message(message)


async def wait_for_message_with_timeout(
    stream: AsyncIterable[Chunk] | LogStreamAsync,
    message: str,
    timeout: float,
    *,
    max_buffered_lines: int | None = None,
) -> None:
    """Bound an async wait by ``timeout`` seconds.

    The scan is cancelled on expiry and ``TimeoutError`` is raised; whatever
    it had buffered is discarded.
    """
    try:
        await asyncio.wait_for(
            wait_for_message_async(stream, message, max_buffered_lines=max_buffered_lines),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise TimeoutError(
            f"Timed out after {timeout}s waiting for message: {message!r}"
        ) from exc
