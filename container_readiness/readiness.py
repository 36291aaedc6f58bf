from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Literal, assert_never

from container_readiness.images.base import Image, descriptor
from container_readiness.models import (
    DurationCondition,
    NothingCondition,
    StderrMessage,
    StdoutMessage,
)
from container_readiness.runtime.streams import LogStream, LogStreamAsync
from container_readiness.runtime.waits import duration_to_seconds

logger = logging.getLogger(__name__)

StdType = Literal["stdout", "stderr"]
OpenStream = Callable[[StdType], LogStream]
OpenStreamAsync = Callable[[StdType], Awaitable[LogStreamAsync]]


def wait_until_ready(image: Image, open_stream: OpenStream) -> None:
    """Apply every ready condition of ``image`` in order.

    ``open_stream`` must return a fresh stream for the requested channel on
    each call; a stream is consumed by the condition that opened it.
    """
    for condition in image.ready_conditions():
        logger.debug("Waiting for %s: %s", descriptor(image), condition)
        if isinstance(condition, StdoutMessage):
            open_stream("stdout").wait_for_message(condition.message)
        elif isinstance(condition, StderrMessage):
            open_stream("stderr").wait_for_message(condition.message)
        elif isinstance(condition, DurationCondition):
            time.sleep(duration_to_seconds(condition.duration))
        elif isinstance(condition, NothingCondition):
            pass
        else:
            assert_never(condition)


async def wait_until_ready_async(image: Image, open_stream: OpenStreamAsync) -> None:
    for condition in image.ready_conditions():
        logger.debug("Waiting for %s: %s", descriptor(image), condition)
        if isinstance(condition, StdoutMessage):
            stream = await open_stream("stdout")
            await stream.wait_for_message(condition.message)
        elif isinstance(condition, StderrMessage):
            stream = await open_stream("stderr")
            await stream.wait_for_message(condition.message)
        elif isinstance(condition, DurationCondition):
            await asyncio.sleep(duration_to_seconds(condition.duration))
        elif isinstance(condition, NothingCondition):
            pass
        else:
            assert_never(condition)
