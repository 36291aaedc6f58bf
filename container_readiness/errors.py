from __future__ import annotations


class WaitError(RuntimeError):
    """Raised when waiting for a message in a log stream fails."""


class EndOfStreamError(WaitError):
    """The stream closed before the message appeared.

    ``lines`` holds every line read before the stream ended (or the most
    recent ones when the scanner was bounded) so the failure can be diagnosed.
    """

    def __init__(self, lines: list[str], lines_scanned: int | None = None) -> None:
        self.lines = lines
        self.lines_scanned = len(lines) if lines_scanned is None else lines_scanned
        super().__init__(
            f"Stream ended before the message was found ({self.lines_scanned} lines scanned)"
        )


class StreamIoError(WaitError):
    """The stream itself could not be read or decoded."""

    def __init__(self, error: BaseException) -> None:
        self.error = error
        super().__init__(f"Failed to read log stream: {error}")


class StreamConsumedError(WaitError):
    """A log stream was used after it had already been consumed."""
