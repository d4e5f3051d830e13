# src/cooprun/core/ports.py

"""
Ports (interfaces) used by the runner, channels and flows.

Producers only need the send side and consumers only the receive side, so
helpers accept these Protocols instead of a concrete Channel. This keeps
Channel and BroadcastChannel interchangeable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, TypeVar

T_co = TypeVar("T_co", covariant=True)
T_contra = TypeVar("T_contra", contravariant=True)


class SendPort(Protocol[T_contra]):
    """Send side of a channel."""

    @property
    def is_closed_for_send(self) -> bool: ...

    async def send(self, value: T_contra) -> None: ...
    def try_send(self, value: T_contra) -> bool: ...
    def close(self) -> None: ...


class ReceivePort(Protocol[T_co]):
    """Receive side of a channel. Iteration ends once closed and drained."""

    @property
    def is_closed_for_receive(self) -> bool: ...

    async def receive(self) -> T_co: ...
    def __aiter__(self) -> AsyncIterator[T_co]: ...


class Token(Protocol):
    """Cooperative cancellation flag consulted by long-running work."""

    @property
    def cancelled(self) -> bool: ...

    def ensure_active(self) -> None: ...
