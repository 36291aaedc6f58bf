from __future__ import annotations

import asyncio
import io
import subprocess
from pathlib import Path

import pytest

from container_readiness import docker_runner
from container_readiness.docker_runner import DockerError, build_run_command
from container_readiness.errors import EndOfStreamError
from container_readiness.images import GenericImage, Kafka
from container_readiness.models import ImageProfile


class FakePopen:
    def __init__(self, stdout: bytes | None = None, stderr: bytes | None = None) -> None:
        self.stdout = io.BytesIO(stdout) if stdout is not None else None
        self.stderr = io.BytesIO(stderr) if stderr is not None else None
        self.terminated = False
        self.waited = False

    def poll(self) -> int | None:
        return None if not self.terminated else -15

    def terminate(self) -> None:
        self.terminated = True

    def wait(self) -> int:
        self.waited = True
        return -15


def test_build_run_command_passes_env_image_and_args(monkeypatch: object) -> None:
    monkeypatch.delenv("CR_DOCKER_NETWORK", raising=False)
    image = GenericImage(
        ImageProfile(name="redis", tag="7", env={"A": "1"}, args=["redis-server"])
    )

    cmd = build_run_command(image, name="cache")

    assert cmd == [
        "docker",
        "run",
        "-d",
        "--name",
        "cache",
        "-e",
        "A=1",
        "redis:7",
        "redis-server",
    ]


def test_build_run_command_adds_network_from_env(monkeypatch: object) -> None:
    monkeypatch.setenv("CR_DOCKER_NETWORK", "test-net")

    cmd = build_run_command(Kafka(), detach=False)

    assert cmd[:4] == ["docker", "run", "--network", "test-net"]
    assert "confluentinc/cp-kafka:6.1.1" in cmd
    assert cmd[-3:-1] == ["/bin/bash", "-c"]


def test_ensure_docker_reachable_reports_missing_cli(monkeypatch: object) -> None:
    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("docker")

    monkeypatch.setattr(docker_runner.subprocess, "run", fake_run)

    with pytest.raises(DockerError, match="Docker CLI not found"):
        docker_runner.ensure_docker_reachable()


def test_ensure_docker_reachable_surfaces_daemon_error(monkeypatch: object) -> None:
    def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(args=cmd, returncode=1, stdout="", stderr="no daemon")

    monkeypatch.setattr(docker_runner.subprocess, "run", fake_run)

    with pytest.raises(DockerError, match="no daemon"):
        docker_runner.ensure_docker_reachable()


def test_open_log_stream_follows_requested_channel(monkeypatch: object) -> None:
    captured: dict[str, object] = {}
    process = FakePopen(stderr=b"starting\nready for connections\n")

    def fake_popen(cmd: list[str], *, stdout: int, stderr: int) -> FakePopen:
        captured["cmd"] = cmd
        captured["stdout"] = stdout
        captured["stderr"] = stderr
        return process

    monkeypatch.setattr(docker_runner.subprocess, "Popen", fake_popen)

    stream = docker_runner.open_log_stream("abc123", "stderr")
    stream.wait_for_message("ready")

    assert captured["cmd"] == ["docker", "logs", "--follow", "abc123"]
    assert captured["stdout"] == subprocess.DEVNULL
    assert captured["stderr"] == subprocess.PIPE
    assert process.terminated is True
    assert process.waited is True


def test_open_log_stream_uses_configured_buffer_bound(monkeypatch: object) -> None:
    monkeypatch.setenv("CR_MAX_BUFFERED_LINES", "1")
    process = FakePopen(stdout=b"one\ntwo\n")
    monkeypatch.setattr(docker_runner.subprocess, "Popen", lambda cmd, **kwargs: process)

    with pytest.raises(EndOfStreamError) as excinfo:
        docker_runner.open_log_stream("abc123", "stdout").wait_for_message("ready")

    assert excinfo.value.lines == ["two"]
    assert excinfo.value.lines_scanned == 2


class FakeAsyncProcess:
    def __init__(self, data: bytes) -> None:
        self.stdout = asyncio.StreamReader()
        self.stdout.feed_data(data)
        self.stdout.feed_eof()
        self.stderr = None
        self.returncode: int | None = None
        self.terminated = False

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15

    async def wait(self) -> int:
        return self.returncode or 0


@pytest.mark.asyncio
async def test_open_log_stream_async_stops_process_after_match(monkeypatch: object) -> None:
    process = FakeAsyncProcess(b"booting\nCreating new log file\n")
    captured: dict[str, object] = {}

    async def fake_exec(*cmd: str, stdout: int, stderr: int) -> FakeAsyncProcess:
        captured["cmd"] = list(cmd)
        return process

    monkeypatch.setattr(docker_runner.asyncio, "create_subprocess_exec", fake_exec)

    stream = await docker_runner.open_log_stream_async("abc123", "stdout")
    await stream.wait_for_message("Creating new log file")

    assert captured["cmd"] == ["docker", "logs", "--follow", "abc123"]
    assert process.terminated is True


def test_dump_container_logs_writes_both_channels(monkeypatch: object, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        assert cmd == ["docker", "logs", "abc123"]
        return subprocess.CompletedProcess(
            args=cmd, returncode=0, stdout=b"out line\n", stderr=b"err line\n"
        )

    monkeypatch.setattr(docker_runner.subprocess, "run", fake_run)

    written = docker_runner.dump_container_logs(
        "abc123", container_name="minio/minio", dump_dir=tmp_path
    )

    assert written == [
        tmp_path / "minio_minio_stdout.log",
        tmp_path / "minio_minio_stderr.log",
    ]
    assert written[0].read_bytes() == b"out line\n"
    assert written[1].read_bytes() == b"err line\n"


def test_read_container_logs_raises_on_failure(monkeypatch: object) -> None:
    def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        return subprocess.CompletedProcess(
            args=cmd, returncode=1, stdout=b"", stderr=b"No such container: abc123"
        )

    monkeypatch.setattr(docker_runner.subprocess, "run", fake_run)

    with pytest.raises(DockerError, match="No such container"):
        docker_runner.read_container_logs("abc123")
