from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from container_readiness.models import WaitFor


@runtime_checkable
class Image(Protocol):
    """What a container profile exposes to the readiness engine."""

    def name(self) -> str: ...

    def tag(self) -> str: ...

    def ready_conditions(self) -> list[WaitFor]: ...

    def env_vars(self) -> Iterator[tuple[str, str]]: ...

    def args(self) -> list[str]: ...


def descriptor(image: Image) -> str:
    return f"{image.name()}:{image.tag()}"
