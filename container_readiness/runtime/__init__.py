"""Log-stream scanning engine for container readiness checks."""

from container_readiness.runtime.scanner import MessageScanner, handle_line
from container_readiness.runtime.streams import LogStream, LogStreamAsync
from container_readiness.runtime.waits import (
    wait_for_message,
    wait_for_message_async,
    wait_for_message_with_timeout,
)

__all__ = [
    "LogStream",
    "LogStreamAsync",
    "MessageScanner",
    "handle_line",
    "wait_for_message",
    "wait_for_message_async",
    "wait_for_message_with_timeout",
]
