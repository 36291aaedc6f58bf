from __future__ import annotations

import inspect
from collections.abc import AsyncGenerator, AsyncIterable, Iterable, Iterator

from container_readiness.errors import StreamConsumedError, StreamIoError
from container_readiness.runtime.scanner import MessageScanner

Chunk = bytes | bytearray | str


def decode_line(raw: bytes) -> str:
    text = raw.decode("utf-8")
    if text.endswith("\n"):
        text = text[:-1]
        if text.endswith("\r"):
            text = text[:-1]
    return text


def _as_bytes(chunk: Chunk) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"log chunks must be bytes or str, got {type(chunk).__name__}")


def _whole(chunks: Iterable[Chunk] | Chunk) -> Iterable[Chunk]:
    # A bare payload is one chunk, not an iterable of ints or characters.
    if isinstance(chunks, (bytes, bytearray, str)):
        return (chunks,)
    return chunks


class _LineBuffer:
    """Carries an unterminated fragment between chunks.

    Only the newly appended bytes are searched for a newline, since the
    pending fragment is known not to contain one.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    def push(self, chunk: Chunk) -> list[bytes]:
        start = len(self._pending)
        self._pending += _as_bytes(chunk)
        lines: list[bytes] = []
        begin = 0
        end = self._pending.find(b"\n", start)
        while end != -1:
            lines.append(bytes(self._pending[begin : end + 1]))
            begin = end + 1
            end = self._pending.find(b"\n", begin)
        if begin:
            del self._pending[:begin]
        return lines

    def flush(self) -> list[bytes]:
        if not self._pending:
            return []
        tail = bytes(self._pending)
        self._pending.clear()
        return [tail]


def iter_lines(chunks: Iterable[Chunk] | Chunk) -> Iterator[str]:
    """Yield decoded lines from arbitrary byte chunks.

    File objects already yield whole lines; other iterables (docker log
    frames, sockets) may split a line across chunks, so bytes are carried
    over until a newline arrives. A trailing fragment without a newline is
    still reported as a line.
    """
    buffer = _LineBuffer()
    for chunk in _whole(chunks):
        for raw in buffer.push(chunk):
            yield decode_line(raw)
    for raw in buffer.flush():
        yield decode_line(raw)


async def aiter_lines(chunks: AsyncIterable[Chunk]) -> AsyncGenerator[str, None]:
    buffer = _LineBuffer()
    async for chunk in chunks:
        for raw in buffer.push(chunk):
            yield decode_line(raw)
    for raw in buffer.flush():
        yield decode_line(raw)


class LogStream:
    """Blocking line source over a readable byte stream.

    The stream is owned by the first ``wait_for_message`` call and closed
    when it returns, whatever the outcome.
    """

    def __init__(
        self, stream: Iterable[Chunk] | Chunk, *, max_buffered_lines: int | None = None
    ) -> None:
        self._inner = stream
        self._max_buffered_lines = max_buffered_lines
        self._consumed = False

    def __repr__(self) -> str:
        return "LogStream()"

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _take(self) -> Iterable[Chunk] | Chunk:
        if self._consumed:
            raise StreamConsumedError("LogStream has already been consumed")
        self._consumed = True
        return self._inner

    def wait_for_message(self, message: str) -> None:
        stream = self._take()
        scanner = MessageScanner(message, self._max_buffered_lines)
        lines = iter_lines(stream)
        try:
            while True:
                try:
                    line = next(lines)
                except StopIteration:
                    break
                except (OSError, ValueError) as exc:
                    raise StreamIoError(exc) from exc
                if scanner.feed(line):
                    return
            raise scanner.end_of_stream()
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()

    def into_inner(self) -> Iterable[Chunk] | Chunk:
        return self._take()


class LogStreamAsync:
    """Line source over an async byte stream such as ``asyncio.StreamReader``.

    Each ``await`` for the next line is the only suspension point. When the
    surrounding task is cancelled the buffered lines are dropped with it.
    """

    def __init__(
        self, stream: AsyncIterable[Chunk], *, max_buffered_lines: int | None = None
    ) -> None:
        self._inner = stream
        self._max_buffered_lines = max_buffered_lines
        self._consumed = False

    def __repr__(self) -> str:
        return "LogStreamAsync()"

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _take(self) -> AsyncIterable[Chunk]:
        if self._consumed:
            raise StreamConsumedError("LogStreamAsync has already been consumed")
        self._consumed = True
        return self._inner

    async def wait_for_message(self, message: str) -> None:
        stream = self._take()
        scanner = MessageScanner(message, self._max_buffered_lines)
        lines = aiter_lines(stream)
        try:
            while True:
                try:
                    line = await anext(lines)
                except StopAsyncIteration:
                    break
                except (OSError, ValueError) as exc:
                    raise StreamIoError(exc) from exc
                if scanner.feed(line):
                    return
            raise scanner.end_of_stream()
        finally:
            await lines.aclose()
            await _close_async(stream)

    def into_inner(self) -> AsyncIterable[Chunk]:
        return self._take()


async def _close_async(stream: object) -> None:
    aclose = getattr(stream, "aclose", None)
    if callable(aclose):
        await aclose()
        return
    close = getattr(stream, "close", None)
    if callable(close):
        result = close()
        if inspect.isawaitable(result):
            await result
