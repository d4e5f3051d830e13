# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from cooprun.channels.channel import Channel
from cooprun.tasks.cancel import CancellationToken


@dataclass(slots=True)
class Recorder:
    """
    Ordered event log shared by several tasks.

    Used to assert how task side effects interleave.
    """

    events: list[str] = field(default_factory=list)

    def add(self, event: str) -> None:
        self.events.append(event)


def sleeper(seconds: float, recorder: Recorder | None = None, label: str = "sleeper"):
    """Work that sleeps and records whether its cleanup ran."""

    async def _work(token: CancellationToken) -> str:
        try:
            await asyncio.sleep(seconds)
            return label
        finally:
            if recorder is not None:
                recorder.add(f"{label}:cleanup")

    return _work


async def send_all(channel: Channel[int], values: list[int], *, close: bool = False) -> None:
    for value in values:
        await channel.send(value)
    if close:
        channel.close()
