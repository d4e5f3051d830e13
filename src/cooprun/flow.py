# src/cooprun/flow.py

"""
Cold asynchronous streams.

A Flow wraps an async generator function. Nothing runs until the flow is
collected, and every collection runs the producer again from the start.
Intermediate operators (map, filter, transform, take) return new flows;
terminal operators (collect, to_list, first) consume them.

Early termination (take, first, an exception in the collector) closes the
upstream generators, so their `finally` blocks run.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable, Iterable
from contextlib import aclosing
from typing import Any, Generic, TypeVar

from .channels.builders import produce
from .channels.channel import Channel
from .core.ports import SendPort
from .tasks.task_runner import Task, TaskRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Flow(Generic[T]):
    def __init__(self, producer: Callable[[], AsyncGenerator[T, None]], *, name: str = "flow") -> None:
        self._producer = producer
        self.name = name

    def __repr__(self) -> str:
        return f"<Flow {self.name}>"

    def __aiter__(self) -> AsyncGenerator[T, None]:
        return self._producer()

    # ---- intermediate operators ----

    def map(self, fn: Callable[[T], R | Awaitable[R]]) -> Flow[R]:
        async def gen() -> AsyncGenerator[R, None]:
            async with aclosing(self._producer()) as upstream:
                async for value in upstream:
                    yield await _maybe_await(fn(value))

        return Flow(gen, name=f"{self.name}.map")

    def filter(self, predicate: Callable[[T], bool | Awaitable[bool]]) -> Flow[T]:
        async def gen() -> AsyncGenerator[T, None]:
            async with aclosing(self._producer()) as upstream:
                async for value in upstream:
                    if await _maybe_await(predicate(value)):
                        yield value

        return Flow(gen, name=f"{self.name}.filter")

    def transform(self, fn: Callable[[T], AsyncIterable[R] | Iterable[R]]) -> Flow[R]:
        """Emit zero or more values per upstream value (fn may be a generator function)."""

        async def gen() -> AsyncGenerator[R, None]:
            async with aclosing(self._producer()) as upstream:
                async for value in upstream:
                    emitted = fn(value)
                    if isinstance(emitted, AsyncGenerator):
                        async with aclosing(emitted) as inner:
                            async for out in inner:
                                yield out
                    elif isinstance(emitted, AsyncIterable):
                        async for out in emitted:
                            yield out
                    else:
                        for out in emitted:
                            yield out

        return Flow(gen, name=f"{self.name}.transform")

    def take(self, count: int) -> Flow[T]:
        """First `count` values, then stop and close the upstream."""

        async def gen() -> AsyncGenerator[T, None]:
            if count <= 0:
                return
            taken = 0
            async with aclosing(self._producer()) as upstream:
                async for value in upstream:
                    yield value
                    taken += 1
                    if taken >= count:
                        logger.debug("%s: took %d, closing upstream", self.name, count)
                        return

        return Flow(gen, name=f"{self.name}.take({count})")

    # ---- terminal operators ----

    async def collect(self, action: Callable[[T], Any] | None = None) -> None:
        async with aclosing(self._producer()) as it:
            async for value in it:
                if action is not None:
                    await _maybe_await(action(value))

    async def to_list(self) -> list[T]:
        out: list[T] = []
        await self.collect(out.append)
        return out

    async def first(self) -> T:
        async with aclosing(self._producer()) as it:
            async for value in it:
                return value
        raise ValueError(f"{self.name} completed without emitting")

    async def send_to(self, port: SendPort[T]) -> None:
        """Collect into a channel (or broadcast), suspending whenever it is full."""
        await self.collect(port.send)

    def produce_in(
            self,
            runner: TaskRunner,
            *,
            capacity: int | None = None,
    ) -> tuple[Channel[T], Task[None]]:
        """Collect this flow in a new task, sending every value into a channel."""
        return produce(runner, self.send_to, capacity=capacity, name=self.name)


# ---- builders ----

def flow(producer: Callable[[], AsyncGenerator[T, None]]) -> Flow[T]:
    """Wrap an async generator function; usable as a decorator."""
    return Flow(producer, name=getattr(producer, "__name__", "flow"))


def flow_of(*values: T) -> Flow[T]:
    return as_flow(values)


def as_flow(source: Iterable[T] | AsyncIterable[T]) -> Flow[T]:
    """
    Flow over an existing collection or async iterable.

    A one-shot async iterator (e.g. a Channel) is only cold in name: a second
    collection sees whatever is left.
    """

    async def gen() -> AsyncGenerator[T, None]:
        if isinstance(source, AsyncIterable):
            async for value in source:
                yield value
        else:
            for value in source:
                yield value

    return Flow(gen, name="as_flow")
