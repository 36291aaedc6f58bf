from __future__ import annotations

import logging
from collections import deque

from container_readiness.errors import EndOfStreamError

logger = logging.getLogger(__name__)


def handle_line(line: str, message: str, lines: list[str]) -> bool:
    """Return True when ``line`` contains ``message``, otherwise buffer it."""
    if message in line:
        logger.info("Found message after comparing %d lines", len(lines))
        return True
    lines.append(line)
    return False


def end_of_stream(lines: list[str], lines_scanned: int | None = None) -> EndOfStreamError:
    scanned = len(lines) if lines_scanned is None else lines_scanned
    logger.error("Failed to find message in stream after comparing %d lines.", scanned)
    return EndOfStreamError(lines, lines_scanned=scanned)


class MessageScanner:
    """Literal, case-sensitive substring matcher for one wait operation.

    Non-matching lines are kept for diagnostics. With ``max_buffered_lines``
    set, only the most recent lines are kept while ``lines_scanned`` keeps
    counting every line.
    """

    def __init__(self, message: str, max_buffered_lines: int | None = None) -> None:
        if max_buffered_lines is not None and max_buffered_lines < 0:
            raise ValueError("max_buffered_lines must be zero or positive")
        self.message = message
        self.max_buffered_lines = max_buffered_lines
        self._lines: deque[str] = deque(maxlen=max_buffered_lines)
        self._scanned = 0

    @property
    def lines_scanned(self) -> int:
        return self._scanned

    @property
    def buffered_lines(self) -> list[str]:
        return list(self._lines)

    def feed(self, line: str) -> bool:
        if self.message in line:
            logger.info("Found message after comparing %d lines", self._scanned)
            return True
        self._lines.append(line)
        self._scanned += 1
        return False

    def end_of_stream(self) -> EndOfStreamError:
        return end_of_stream(self.buffered_lines, lines_scanned=self._scanned)
