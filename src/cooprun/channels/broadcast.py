# src/cooprun/channels/broadcast.py

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from ..core.errors import ClosedSendChannelFailure
from .channel import Channel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BroadcastChannel(Generic[T]):
    """
    Send side that fans every value out to all open subscriptions.

    Each subscription is an ordinary Channel with its own capacity. A full
    subscription suspends send() for everyone, so a slow subscriber applies
    backpressure to the broadcaster. Subscriptions closed by their holder are
    dropped on the next send.
    """

    def __init__(self, *, name: str | None = None) -> None:
        self.name = name or f"broadcast-{id(self):x}"
        self._subscriptions: list[Channel[T]] = []
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<BroadcastChannel {self.name} {state} subscribers={len(self._subscriptions)}>"

    @property
    def is_closed_for_send(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, capacity: int | None = None) -> Channel[T]:
        """
        New subscription receiving values sent from now on.

        Subscribing after close returns an already closed channel.
        """
        n = len(self._subscriptions) + 1
        sub: Channel[T] = Channel(capacity, name=f"{self.name}/sub-{n}")
        if self._closed:
            sub.close()
            return sub
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Channel[T]) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            return
        sub.close()

    def _prune(self) -> list[Channel[T]]:
        self._subscriptions = [s for s in self._subscriptions if not s.is_closed_for_send]
        return list(self._subscriptions)

    async def send(self, value: T) -> None:
        if self._closed:
            raise ClosedSendChannelFailure(f"{self.name} is closed")
        for sub in self._prune():
            # close() may have run while an earlier subscriber was full.
            if self._closed:
                raise ClosedSendChannelFailure(f"{self.name} closed during send")
            try:
                await sub.send(value)
            except ClosedSendChannelFailure:
                if self._closed:
                    raise
                # Holder closed it while we were suspended on it.
                logger.debug("Dropping closed subscription %s", sub.name)

    def try_send(self, value: T) -> bool:
        """Deliver to every subscription without suspending, or to none of them."""
        if self._closed:
            raise ClosedSendChannelFailure(f"{self.name} is closed")
        subs = self._prune()
        if any(s.is_full for s in subs):
            return False
        for sub in subs:
            sub.try_send(value)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.close()
        logger.debug("Closed %s (%d subscriptions)", self.name, len(subs))
