from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_DUMP_ROOT = Path("testcontainers")


class ReadinessSettings(BaseModel):
    dump_root: Path = DEFAULT_DUMP_ROOT
    max_buffered_lines: int | None = Field(default=None, ge=0)
    docker_network: str | None = None
    docker_verbose: bool = False


def _env_enabled(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_optional_count(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return None
    return max(parsed, 0)


def load_settings() -> ReadinessSettings:
    dump_root = os.environ.get("CR_LOG_DUMP_ROOT", "").strip()
    network = os.environ.get("CR_DOCKER_NETWORK", "").strip()
    return ReadinessSettings(
        dump_root=Path(dump_root) if dump_root else DEFAULT_DUMP_ROOT,
        max_buffered_lines=_env_optional_count("CR_MAX_BUFFERED_LINES"),
        docker_network=network or None,
        docker_verbose=_env_enabled("CR_DOCKER_VERBOSE", False),
    )
