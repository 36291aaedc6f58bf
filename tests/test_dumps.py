from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from container_readiness import dumps
from container_readiness.dumps import (
    DumpDirectory,
    format_dump_timestamp,
    resolve_dump_directory,
    resolve_log_file_path,
    write_log_dump,
)


def test_resolve_log_file_path_sanitizes_namespaced_names() -> None:
    path = resolve_log_file_path(Path("dump"), "minio/minio", "stdout")

    assert path == Path("dump") / "minio_minio_stdout.log"
    assert path.parent == Path("dump")


def test_resolve_log_file_path_is_deterministic() -> None:
    first = resolve_log_file_path(Path("dump"), "library/postgres", "stderr")
    second = resolve_log_file_path(Path("dump"), "library/postgres", "stderr")

    assert first == second
    assert first.name == "library_postgres_stderr.log"


def test_resolve_log_file_path_replaces_windows_separators() -> None:
    path = resolve_log_file_path(Path("dump"), "odd\\name", "stdout")

    assert path.name == "odd_name_stdout.log"


def test_format_dump_timestamp_uses_two_fractional_digits() -> None:
    now = datetime(2024, 5, 1, 12, 30, 5, 259_999, tzinfo=UTC)

    assert format_dump_timestamp(now) == "2024-05-01T12:30:05.25Z"


def test_format_dump_timestamp_converts_to_utc() -> None:
    now = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    assert format_dump_timestamp(now) == "2024-05-01T12:00:00.00Z"


def test_dump_directory_computes_timestamp_on_first_access(tmp_path: Path) -> None:
    calls: list[datetime] = []

    def clock() -> datetime:
        now = datetime(2024, 5, 1, 12, 30, 5, 120_000, tzinfo=UTC) + timedelta(
            seconds=len(calls)
        )
        calls.append(now)
        return now

    directory = DumpDirectory(root=tmp_path, clock=clock)
    assert calls == []

    first = directory.path
    second = directory.path

    assert first == second == tmp_path / "2024-05-01T12:30:05.12Z"
    assert len(calls) == 1


def test_dump_directory_computes_once_under_concurrent_access(tmp_path: Path) -> None:
    calls: list[int] = []
    barrier = threading.Barrier(8)

    def clock() -> datetime:
        calls.append(1)
        return datetime(2024, 5, 1, tzinfo=UTC) + timedelta(seconds=len(calls))

    directory = DumpDirectory(root=tmp_path, clock=clock)
    results: list[Path] = []

    def worker() -> None:
        barrier.wait()
        results.append(directory.path)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert len(set(results)) == 1


def test_dump_directory_falls_back_to_empty_timestamp(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    def clock() -> datetime:
        # converting year 1 with a positive offset to UTC overflows
        return datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))

    directory = DumpDirectory(root=tmp_path, clock=clock)

    assert directory.path == tmp_path
    assert any("Could not format log dump timestamp" in r.getMessage() for r in caplog.records)


def test_dump_directory_log_file_path(tmp_path: Path) -> None:
    directory = DumpDirectory(root=tmp_path, clock=lambda: datetime(2024, 1, 2, tzinfo=UTC))

    path = directory.log_file_path("minio/minio", "stdout")

    assert path == tmp_path / "2024-01-02T00:00:00.00Z" / "minio_minio_stdout.log"


def test_resolve_dump_directory_is_cached(monkeypatch: object) -> None:
    monkeypatch.setattr(dumps, "_default_dump_directory", None)
    monkeypatch.setenv("CR_LOG_DUMP_ROOT", "custom-dumps")

    first = resolve_dump_directory()
    second = resolve_dump_directory()

    assert first == second
    assert first.parent == Path("custom-dumps")


def test_write_log_dump_creates_parent_directories(tmp_path: Path) -> None:
    target = resolve_log_file_path(tmp_path / "run", "minio/minio", "stderr")

    written = write_log_dump(target, b"line one\nline two\n")

    assert written == target
    assert target.read_bytes() == b"line one\nline two\n"
