from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex
import stat
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import BinaryIO

import click
from pydantic import ValidationError

from container_readiness.docker_runner import (
    DockerError,
    build_run_command,
    dump_container_logs,
    ensure_docker_reachable,
    open_log_stream,
    open_log_stream_async,
)
from container_readiness.dumps import resolve_dump_directory, resolve_log_file_path
from container_readiness.errors import EndOfStreamError, WaitError
from container_readiness.images import GenericImage, Image, Kafka, descriptor
from container_readiness.models import describe_condition, format_validation_error
from container_readiness.readiness import StdType
from container_readiness.runtime.streams import LogStream, LogStreamAsync
from container_readiness.runtime.waits import wait_for_message_with_timeout
from container_readiness.settings import load_settings

_TAIL_LINES = 10


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _emit_end_of_stream(exc: EndOfStreamError) -> None:
    click.echo("STATUS=end_of_stream")
    click.echo(f"LINES_SCANNED={exc.lines_scanned}")
    for line in exc.lines[-_TAIL_LINES:]:
        click.echo(line, err=True)


def _run_wait(run: Callable[[], None]) -> None:
    try:
        run()
    except EndOfStreamError as exc:
        _emit_end_of_stream(exc)
        raise click.ClickException(str(exc)) from exc
    except TimeoutError as exc:
        click.echo("STATUS=timeout")
        raise click.ClickException(str(exc)) from exc
    except WaitError as exc:
        click.echo("STATUS=io_error")
        raise click.ClickException(str(exc)) from exc
    click.echo("STATUS=found")


async def _wait_async(stream: LogStreamAsync, message: str, timeout: float | None) -> None:
    if timeout is None:
        await stream.wait_for_message(message)
    else:
        await wait_for_message_with_timeout(stream, message, timeout)


def _stdin_handle() -> BinaryIO:
    return sys.stdin.buffer


def _is_pipe(handle: BinaryIO) -> bool:
    try:
        mode = os.fstat(handle.fileno()).st_mode
    except (OSError, ValueError):
        return False
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)


class _PipeLines:
    """Pipe read through the event loop so a cancelled wait stops reading."""

    def __init__(self, reader: asyncio.StreamReader, transport: asyncio.ReadTransport) -> None:
        self._reader = reader
        self._transport = transport

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._reader.__aiter__()

    def close(self) -> None:
        self._transport.close()


async def _open_pipe(handle: BinaryIO) -> _PipeLines:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    transport, _ = await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), handle
    )
    return _PipeLines(reader, transport)


async def _read_file_lines(handle: BinaryIO) -> AsyncIterator[bytes]:
    for line in handle:
        yield line
        await asyncio.sleep(0)


async def _wait_handle(
    handle: BinaryIO, message: str, timeout: float | None, limit: int | None
) -> None:
    source = await _open_pipe(handle) if _is_pipe(handle) else _read_file_lines(handle)
    await _wait_async(LogStreamAsync(source, max_buffered_lines=limit), message, timeout)


def _resolve_image(profile: Path | None, kafka: bool) -> Image:
    if kafka and profile is not None:
        raise click.ClickException("Use either --kafka or a profile file, not both")
    if kafka:
        return Kafka()
    if profile is None:
        raise click.ClickException("Provide an image profile file or --kafka")
    try:
        return GenericImage.from_file(profile)
    except ValidationError as exc:
        raise click.ClickException(format_validation_error(exc)) from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group(help="Container readiness CLI: wait for a message in process or container logs.")
@click.option("verbose", "--verbose", "-v", is_flag=True, default=False)
def app(verbose: bool) -> None:
    _configure_logging(verbose)


@app.command("wait")
@click.argument("message", type=str)
@click.option(
    "source",
    "--file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read log output from a file instead of stdin.",
)
@click.option("use_async", "--async", is_flag=True, default=False)
@click.option("timeout", "--timeout", type=float, default=None, help="Seconds (with --async).")
@click.option("max_lines", "--max-lines", type=click.IntRange(min=0), default=None)
def wait(
    message: str,
    source: Path | None,
    use_async: bool,
    timeout: float | None,
    max_lines: int | None,
) -> None:
    if timeout is not None and not use_async:
        raise click.ClickException("--timeout requires --async")
    limit = max_lines if max_lines is not None else load_settings().max_buffered_lines
    handle = source.open("rb") if source is not None else _stdin_handle()
    try:
        if use_async:
            _run_wait(lambda: asyncio.run(_wait_handle(handle, message, timeout, limit)))
        else:
            blocking = LogStream(handle, max_buffered_lines=limit)
            _run_wait(lambda: blocking.wait_for_message(message))
    finally:
        if source is not None:
            handle.close()


@app.command("wait-container")
@click.argument("container", type=str)
@click.argument("message", type=str)
@click.option("use_stderr", "--stderr", is_flag=True, default=False)
@click.option("use_async", "--async", is_flag=True, default=False)
@click.option("timeout", "--timeout", type=float, default=None, help="Seconds (with --async).")
@click.option(
    "dump_name",
    "--dump",
    type=str,
    default=None,
    help="Persist the container logs under this name when the message is not found.",
)
def wait_container(
    container: str,
    message: str,
    use_stderr: bool,
    use_async: bool,
    timeout: float | None,
    dump_name: str | None,
) -> None:
    if timeout is not None and not use_async:
        raise click.ClickException("--timeout requires --async")
    stdtype: StdType = "stderr" if use_stderr else "stdout"
    try:
        ensure_docker_reachable()
        if use_async:

            async def _follow() -> None:
                stream = await open_log_stream_async(container, stdtype)
                await _wait_async(stream, message, timeout)

            _run_wait(lambda: asyncio.run(_follow()))
        else:
            stream = open_log_stream(container, stdtype)
            _run_wait(lambda: stream.wait_for_message(message))
    except DockerError as exc:
        raise click.ClickException(str(exc)) from exc
    except click.ClickException:
        if dump_name is not None:
            try:
                paths = dump_container_logs(container, container_name=dump_name)
            except DockerError as dump_exc:
                click.echo(f"DUMP_ERROR={dump_exc}", err=True)
            else:
                for path in paths:
                    click.echo(f"LOG_FILE={path}")
        raise


@app.command("dump-path")
@click.argument("container_name", type=str, required=False)
@click.option(
    "stream_type",
    "--stream",
    type=click.Choice(["stdout", "stderr"]),
    default="stdout",
    show_default=True,
)
def dump_path(container_name: str | None, stream_type: str) -> None:
    dump_dir = resolve_dump_directory()
    click.echo(f"DUMP_DIR={dump_dir}")
    if container_name:
        click.echo(f"LOG_FILE={resolve_log_file_path(dump_dir, container_name, stream_type)}")


@app.command("image")
@click.argument(
    "profile",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=False,
)
@click.option("kafka", "--kafka", is_flag=True, default=False)
@click.option("name", "--name", type=str, default=None, help="Container name for docker run.")
@click.option("as_json", "--json", is_flag=True, default=False)
def image(profile: Path | None, kafka: bool, name: str | None, as_json: bool) -> None:
    resolved = _resolve_image(profile, kafka)
    command = build_run_command(resolved, name=name)
    if as_json:
        payload = {
            "image": descriptor(resolved),
            "env": dict(resolved.env_vars()),
            "ready_conditions": [
                condition.model_dump() for condition in resolved.ready_conditions()
            ],
            "command": command,
        }
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    click.echo(f"IMAGE={descriptor(resolved)}")
    for condition in resolved.ready_conditions():
        click.echo(f"READY={describe_condition(condition)}")
    click.echo(f"ENV_VARS={len(dict(resolved.env_vars()))}")
    click.echo(f"COMMAND={shlex.join(command)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
