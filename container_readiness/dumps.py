from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from container_readiness.settings import load_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def format_dump_timestamp(now: datetime) -> str:
    """ISO-8601 UTC timestamp with centisecond precision, e.g. ``2024-05-01T12:30:05.25Z``."""
    resolved = now.astimezone(UTC)
    centiseconds = resolved.microsecond // 10_000
    return f"{resolved.strftime('%Y-%m-%dT%H:%M:%S')}.{centiseconds:02d}Z"


class DumpDirectory:
    """Timestamped directory for captured container logs.

    The timestamp is taken on first access to ``path``, not at construction,
    and stays fixed for the lifetime of the instance.
    """

    def __init__(self, root: Path | None = None, clock: Clock | None = None) -> None:
        self.root = root if root is not None else load_settings().dump_root
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            with self._lock:
                if self._path is None:
                    self._path = self.root / self._timestamp()
        return self._path

    def _timestamp(self) -> str:
        try:
            return format_dump_timestamp(self._clock())
        except (ValueError, OverflowError) as exc:
            logger.warning("Could not format log dump timestamp, using dump root: %s", exc)
            return ""

    def log_file_path(self, container_name: str, stream_type: str) -> Path:
        return resolve_log_file_path(self.path, container_name, stream_type)


_default_lock = threading.Lock()
_default_dump_directory: DumpDirectory | None = None


def default_dump_directory() -> DumpDirectory:
    global _default_dump_directory
    if _default_dump_directory is None:
        with _default_lock:
            if _default_dump_directory is None:
                _default_dump_directory = DumpDirectory()
    return _default_dump_directory


def resolve_dump_directory() -> Path:
    return default_dump_directory().path


def resolve_log_file_path(dump_dir: Path, container_name: str, stream_type: str) -> Path:
    # image names carry a namespace ("minio/minio"); keep the file in dump_dir
    safe_name = container_name.replace("/", "_").replace("\\", "_")
    return dump_dir / f"{safe_name}_{stream_type}.log"


def write_log_dump(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
