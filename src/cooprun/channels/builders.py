# src/cooprun/channels/builders.py

"""
Helpers that tie channels to a TaskRunner.

- produce(): launch a producer that owns a fresh channel and closes it when done.
- merge(): fan several receive ports into one channel (fan-in).

Fan-out needs no helper: several consumers iterating the same Channel each
receive a disjoint share of the values.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..core.ports import ReceivePort
from ..tasks.task_runner import Task, TaskRunner
from .channel import Channel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def produce(
        runner: TaskRunner,
        work: Callable[[Channel[T]], Awaitable[Any]],
        *,
        capacity: int | None = None,
        name: str | None = None,
) -> tuple[Channel[T], Task[None]]:
    """
    Launch `work(channel)` in `runner` and return the channel with its producer task.

    The channel is closed when the producer finishes for any reason
    (completion, failure or cancellation), so consumers can simply iterate it.
    """
    channel: Channel[T] = Channel(capacity, name=name)

    async def _producer() -> None:
        try:
            await work(channel)
        finally:
            channel.close()

    task = runner.launch(_producer, name=name and f"{name}-producer")
    # Also covers a producer cancelled before its first step.
    task.token.on_cancel(channel.close)
    return channel, task


def merge(
        runner: TaskRunner,
        *sources: ReceivePort[T],
        capacity: int | None = None,
        name: str | None = None,
) -> Channel[T]:
    """
    Fan-in: forward every value from every source into one channel.

    Values from one source keep their relative order; values from different
    sources interleave in arrival order. The merged channel is closed once
    all sources are closed and drained.
    """
    out: Channel[T] = Channel(capacity, name=name)
    remaining = len(sources)

    if remaining == 0:
        out.close()
        return out

    async def _forward(source: ReceivePort[T]) -> None:
        nonlocal remaining
        try:
            async for value in source:
                await out.send(value)
        finally:
            remaining -= 1
            if remaining == 0:
                out.close()

    for i, source in enumerate(sources):
        runner.launch(functools.partial(_forward, source), name=name and f"{name}-forward-{i}")
    logger.debug("Merging %d sources into %s", len(sources), out.name)
    return out
