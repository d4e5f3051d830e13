# src/cooprun/channels/channel.py

"""
FIFO channel between tasks.

Semantics:
- send() suspends while the channel is bounded and full.
- receive() suspends while the channel is empty.
- close() is idempotent. Pending senders fail with ClosedSendChannelFailure;
  receivers drain what is buffered first and only then observe closure.
- `async for` over a channel ends (instead of raising) once it is closed and drained.

Buffer, waiters and the closed flag are only touched from the event loop
thread, and never across an await, which serialises all mutation.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from typing import Final, Generic, TypeVar

from ..config import get_settings
from ..core.errors import ClosedReceiveChannelFailure, ClosedSendChannelFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNLIMITED: Final = -1


def _wake_next(waiters: deque[asyncio.Future[None]]) -> None:
    while waiters:
        waiter = waiters.popleft()
        if not waiter.done():
            waiter.set_result(None)
            return


def _wake_all(waiters: deque[asyncio.Future[None]]) -> None:
    while waiters:
        waiter = waiters.popleft()
        if not waiter.done():
            waiter.set_result(None)


class Channel(Generic[T]):
    """
    Bounded (capacity >= 1) or unbounded (UNLIMITED) channel.

    With no capacity given, the configured default is used
    (COOPRUN_CHANNEL_CAPACITY; <= 0 means unlimited).
    """

    def __init__(self, capacity: int | None = None, *, name: str | None = None) -> None:
        if capacity is None:
            configured = get_settings().default_channel_capacity
            capacity = configured if configured > 0 else UNLIMITED
        if capacity != UNLIMITED and capacity < 1:
            raise ValueError(f"capacity must be >= 1 or UNLIMITED, got {capacity}")

        self.name = name or f"channel-{id(self):x}"
        self._capacity = capacity
        self._buffer: deque[T] = deque()
        self._closed = False
        self._senders: deque[asyncio.Future[None]] = deque()
        self._receivers: deque[asyncio.Future[None]] = deque()

    def __repr__(self) -> str:
        cap = "unlimited" if self._capacity == UNLIMITED else self._capacity
        state = "closed" if self._closed else "open"
        return f"<Channel {self.name} {state} buffered={len(self._buffer)} capacity={cap}>"

    def __len__(self) -> int:
        return len(self._buffer)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    # ---- introspection ----

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_empty(self) -> bool:
        return not self._buffer

    @property
    def is_full(self) -> bool:
        return self._is_full()

    @property
    def is_closed_for_send(self) -> bool:
        return self._closed

    @property
    def is_closed_for_receive(self) -> bool:
        return self._closed and not self._buffer

    def _is_full(self) -> bool:
        return self._capacity != UNLIMITED and len(self._buffer) >= self._capacity

    # ---- send side ----

    async def send(self, value: T) -> None:
        while True:
            if self._closed:
                raise ClosedSendChannelFailure(f"{self.name} is closed")
            if not self._is_full():
                break

            waiter = asyncio.get_running_loop().create_future()
            self._senders.append(waiter)
            try:
                await waiter
            except BaseException:
                waiter.cancel()
                try:
                    self._senders.remove(waiter)
                except ValueError:
                    pass
                # We may have consumed a wakeup meant for the next sender.
                if not self._closed and not self._is_full():
                    _wake_next(self._senders)
                raise

        self._buffer.append(value)
        _wake_next(self._receivers)

    def try_send(self, value: T) -> bool:
        """Send without suspending. Returns False when full; raises when closed."""
        if self._closed:
            raise ClosedSendChannelFailure(f"{self.name} is closed")
        if self._is_full():
            return False
        self._buffer.append(value)
        _wake_next(self._receivers)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug(
            "Closed %s (buffered=%d senders=%d receivers=%d)",
            self.name,
            len(self._buffer),
            len(self._senders),
            len(self._receivers),
        )
        _wake_all(self._senders)
        _wake_all(self._receivers)

    # ---- receive side ----

    async def receive(self) -> T:
        while not self._buffer:
            if self._closed:
                raise ClosedReceiveChannelFailure(f"{self.name} is closed")

            waiter = asyncio.get_running_loop().create_future()
            self._receivers.append(waiter)
            try:
                await waiter
            except BaseException:
                waiter.cancel()
                try:
                    self._receivers.remove(waiter)
                except ValueError:
                    pass
                if self._buffer:
                    _wake_next(self._receivers)
                raise

        value = self._buffer.popleft()
        _wake_next(self._senders)
        return value

    def try_receive(self) -> tuple[bool, T | None]:
        """Receive without suspending: (True, value) or (False, None) when empty."""
        if not self._buffer:
            if self._closed:
                raise ClosedReceiveChannelFailure(f"{self.name} is closed")
            return False, None
        value = self._buffer.popleft()
        _wake_next(self._senders)
        return True, value

    def drain(self) -> list[T]:
        """Take everything currently buffered without suspending (works after close)."""
        items = list(self._buffer)
        self._buffer.clear()
        if not self._closed:
            for _ in items:
                _wake_next(self._senders)
        return items

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                value = await self.receive()
            except ClosedReceiveChannelFailure:
                return
            yield value
