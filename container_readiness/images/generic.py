from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from container_readiness.models import ImageProfile, WaitFor, load_image_profile


@dataclass(slots=True)
class GenericImage:
    """Image backed by a declarative profile, usually loaded from YAML."""

    profile: ImageProfile

    @classmethod
    def from_file(cls, path: Path) -> GenericImage:
        return cls(profile=load_image_profile(path))

    def name(self) -> str:
        return self.profile.name

    def tag(self) -> str:
        return self.profile.tag

    def ready_conditions(self) -> list[WaitFor]:
        return list(self.profile.ready_conditions)

    def env_vars(self) -> Iterator[tuple[str, str]]:
        return iter(self.profile.env.items())

    def args(self) -> list[str]:
        return list(self.profile.args)
