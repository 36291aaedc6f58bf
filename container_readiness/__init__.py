"""Readiness detection for test containers by scanning their log output."""

from container_readiness.dumps import DumpDirectory, resolve_dump_directory, resolve_log_file_path
from container_readiness.errors import (
    EndOfStreamError,
    StreamConsumedError,
    StreamIoError,
    WaitError,
)
from container_readiness.runtime import (
    LogStream,
    LogStreamAsync,
    wait_for_message,
    wait_for_message_async,
)

__all__ = [
    "DumpDirectory",
    "EndOfStreamError",
    "LogStream",
    "LogStreamAsync",
    "StreamConsumedError",
    "StreamIoError",
    "WaitError",
    "resolve_dump_directory",
    "resolve_log_file_path",
    "wait_for_message",
    "wait_for_message_async",
]
