from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any, Literal, assert_never

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

_DURATION_PATTERN = re.compile(r"^\d+(ms|s)$")


class NothingCondition(BaseModel):
    kind: Literal["nothing"] = "nothing"


class StdoutMessage(BaseModel):
    kind: Literal["stdout_message"] = "stdout_message"
    message: str = Field(min_length=1)


class StderrMessage(BaseModel):
    kind: Literal["stderr_message"] = "stderr_message"
    message: str = Field(min_length=1)


class DurationCondition(BaseModel):
    kind: Literal["duration"] = "duration"
    duration: str

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, value: str) -> str:
        if not _DURATION_PATTERN.match(value):
            raise ValueError("Duration must match '<number>ms' or '<number>s'")
        return value


WaitFor = Annotated[
    NothingCondition | StdoutMessage | StderrMessage | DurationCondition,
    Field(discriminator="kind"),
]


def wait_nothing() -> NothingCondition:
    return NothingCondition()


def message_on_stdout(message: str) -> StdoutMessage:
    return StdoutMessage(message=message)


def message_on_stderr(message: str) -> StderrMessage:
    return StderrMessage(message=message)


def wait_duration(duration: str) -> DurationCondition:
    return DurationCondition(duration=duration)


def describe_condition(condition: WaitFor) -> str:
    if isinstance(condition, StdoutMessage):
        return f"stdout contains {condition.message!r}"
    if isinstance(condition, StderrMessage):
        return f"stderr contains {condition.message!r}"
    if isinstance(condition, DurationCondition):
        return f"sleep {condition.duration}"
    if isinstance(condition, NothingCondition):
        return "nothing"
    assert_never(condition)


class ImageProfile(BaseModel):
    name: str = Field(min_length=1)
    tag: str = "latest"
    env: dict[str, str] = Field(default_factory=dict)
    args: list[str] = Field(default_factory=list)
    ready_conditions: list[WaitFor] = Field(default_factory=list)


def parse_image_profile_data(data: dict[str, Any]) -> ImageProfile:
    normalized = dict(data)
    # "image: name:tag" shorthand
    image = normalized.pop("image", None)
    if isinstance(image, str) and "name" not in normalized:
        name, _, tag = image.rpartition(":")
        if name and "/" not in tag:
            normalized["name"] = name
            normalized.setdefault("tag", tag)
        else:
            normalized["name"] = image
    return ImageProfile.model_validate(normalized)


def load_image_profile(path: Path) -> ImageProfile:
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Image profile at {path} must be a YAML object")
    return parse_image_profile_data(raw)


def format_validation_error(exc: ValidationError) -> str:
    messages: list[str] = []
    for issue in exc.errors():
        loc = ".".join(str(part) for part in issue.get("loc", []))
        message = issue.get("msg", "validation error")
        messages.append(f"{loc}: {message}")
    return "\n".join(messages)
