from __future__ import annotations

import asyncio
import logging
import subprocess
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

from container_readiness.dumps import resolve_dump_directory, resolve_log_file_path, write_log_dump
from container_readiness.images.base import Image, descriptor
from container_readiness.readiness import StdType
from container_readiness.runtime.streams import LogStream, LogStreamAsync
from container_readiness.settings import load_settings

logger = logging.getLogger(__name__)

STD_TYPES: tuple[StdType, ...] = ("stdout", "stderr")


class DockerError(RuntimeError):
    """Raised when docker operations fail."""


def _docker_network_flags() -> list[str]:
    network_mode = load_settings().docker_network
    if not network_mode:
        return []
    return ["--network", network_mode]


def _log_command(container: str, *, follow: bool) -> list[str]:
    cmd = ["docker", "logs"]
    if follow:
        cmd.append("--follow")
    cmd.append(container)
    return cmd


def _buffer_limit(max_buffered_lines: int | None) -> int | None:
    if max_buffered_lines is not None:
        return max_buffered_lines
    return load_settings().max_buffered_lines


def ensure_docker_reachable() -> None:
    try:
        result = subprocess.run(["docker", "info"], check=False, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise DockerError("Docker CLI not found. Install Docker to run container images.") from exc
    if result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "docker daemon unreachable"
        raise DockerError(message)


def build_run_command(image: Image, *, name: str | None = None, detach: bool = True) -> list[str]:
    cmd = ["docker", "run"]
    if detach:
        cmd.append("-d")
    if name:
        cmd.extend(["--name", name])
    cmd.extend(_docker_network_flags())
    for key, value in image.env_vars():
        cmd.extend(["-e", f"{key}={value}"])
    cmd.append(descriptor(image))
    cmd.extend(image.args())
    return cmd


class _ProcessOutput:
    """Iterable pipe of a ``docker logs`` process; closing it stops the process."""

    def __init__(self, process: subprocess.Popen[bytes], stdtype: StdType) -> None:
        self._process = process
        pipe = process.stdout if stdtype == "stdout" else process.stderr
        if pipe is None:
            raise DockerError(f"docker logs did not expose {stdtype}")
        self._pipe = pipe

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._pipe)

    def close(self) -> None:
        if self._process.poll() is None:
            self._process.terminate()
        self._pipe.close()
        self._process.wait()


def open_log_stream(
    container: str, stdtype: StdType, *, max_buffered_lines: int | None = None
) -> LogStream:
    try:
        process = subprocess.Popen(
            _log_command(container, follow=True),
            stdout=subprocess.PIPE if stdtype == "stdout" else subprocess.DEVNULL,
            stderr=subprocess.PIPE if stdtype == "stderr" else subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise DockerError("Docker CLI not found. Install Docker to follow container logs.") from exc
    return LogStream(
        _ProcessOutput(process, stdtype),
        max_buffered_lines=_buffer_limit(max_buffered_lines),
    )


class _AsyncProcessOutput:
    def __init__(self, process: asyncio.subprocess.Process, stdtype: StdType) -> None:
        self._process = process
        reader = process.stdout if stdtype == "stdout" else process.stderr
        if reader is None:
            raise DockerError(f"docker logs did not expose {stdtype}")
        self._reader = reader

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._reader.__aiter__()

    async def aclose(self) -> None:
        if self._process.returncode is None:
            self._process.terminate()
        await self._process.wait()


async def open_log_stream_async(
    container: str, stdtype: StdType, *, max_buffered_lines: int | None = None
) -> LogStreamAsync:
    try:
        process = await asyncio.create_subprocess_exec(
            *_log_command(container, follow=True),
            stdout=asyncio.subprocess.PIPE if stdtype == "stdout" else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE if stdtype == "stderr" else asyncio.subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise DockerError("Docker CLI not found. Install Docker to follow container logs.") from exc
    return LogStreamAsync(
        _AsyncProcessOutput(process, stdtype),
        max_buffered_lines=_buffer_limit(max_buffered_lines),
    )


def read_container_logs(container: str) -> dict[StdType, bytes]:
    try:
        result = subprocess.run(
            _log_command(container, follow=False),
            check=False,
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise DockerError("Docker CLI not found. Install Docker to read container logs.") from exc
    if result.returncode != 0:
        message = result.stderr.decode("utf-8", errors="replace").strip()
        raise DockerError(message or f"docker logs failed for {container}")
    return {"stdout": result.stdout, "stderr": result.stderr}


def dump_container_logs(
    container: str,
    container_name: str | None = None,
    dump_dir: Path | None = None,
) -> list[Path]:
    """Persist both output channels of ``container`` under the dump directory."""
    target_dir = dump_dir if dump_dir is not None else resolve_dump_directory()
    name = container_name or container
    captured = read_container_logs(container)
    verbose = load_settings().docker_verbose
    written: list[Path] = []
    for stdtype in STD_TYPES:
        path = resolve_log_file_path(target_dir, name, stdtype)
        written.append(write_log_dump(path, captured[stdtype]))
        if verbose:
            logger.info("Wrote %s logs of %s to %s", stdtype, name, path)
    return written
