# tests/test_broadcast_and_builders.py

from __future__ import annotations

import asyncio

import pytest

from cooprun.channels.broadcast import BroadcastChannel
from cooprun.channels.builders import merge, produce
from cooprun.channels.channel import Channel
from cooprun.core.errors import ClosedSendChannelFailure
from cooprun.tasks.task_models import TaskState
from cooprun.tasks.task_runner import TaskRunner

from .conftest import JOIN_TIMEOUT
from .fakes import send_all


@pytest.mark.asyncio
async def test_broadcast_delivers_every_value_to_every_subscriber() -> None:
    bus: BroadcastChannel[int] = BroadcastChannel(name="bus")
    subs = [bus.subscribe(capacity=2) for _ in range(3)]
    received: list[list[int]] = [[], [], []]

    async def listen(i: int) -> None:
        async for value in subs[i]:
            received[i].append(value)

    async def publish() -> None:
        for v in range(5):
            await bus.send(v)
        bus.close()

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        for i in range(3):
            runner.launch(listen(i))
        runner.launch(publish)

    assert received == [[0, 1, 2, 3, 4]] * 3
    assert all(s.is_closed_for_receive for s in subs)


@pytest.mark.asyncio
async def test_broadcast_close_and_late_subscribe() -> None:
    bus: BroadcastChannel[str] = BroadcastChannel()
    early = bus.subscribe(capacity=4)
    await bus.send("hello")
    bus.close()
    bus.close()

    late = bus.subscribe(capacity=4)

    assert [v async for v in early] == ["hello"]
    assert late.is_closed_for_receive
    with pytest.raises(ClosedSendChannelFailure):
        await bus.send("again")


@pytest.mark.asyncio
async def test_broadcast_drops_closed_subscriptions() -> None:
    bus: BroadcastChannel[int] = BroadcastChannel()
    keep = bus.subscribe(capacity=4)
    gone = bus.subscribe(capacity=4)
    dropped = bus.subscribe(capacity=4)

    bus.unsubscribe(gone)
    dropped.close()
    await bus.send(1)

    assert bus.subscriber_count == 1
    assert keep.drain() == [1]
    assert gone.is_closed_for_receive


def test_broadcast_try_send_is_all_or_nothing() -> None:
    bus: BroadcastChannel[int] = BroadcastChannel()
    roomy = bus.subscribe(capacity=4)
    tight = bus.subscribe(capacity=1)

    assert bus.try_send(1) is True
    assert bus.try_send(2) is False

    assert roomy.drain() == [1]
    assert tight.drain() == [1]


@pytest.mark.asyncio
async def test_produce_closes_channel_when_producer_finishes() -> None:
    async def squares(ch: Channel[int]) -> None:
        for i in range(1, 6):
            await ch.send(i * i)

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        ch, job = produce(runner, squares, capacity=2, name="squares")
        got = [v async for v in ch]

    assert got == [1, 4, 9, 16, 25]
    assert job.state == TaskState.COMPLETED


@pytest.mark.asyncio
async def test_produce_closes_channel_when_producer_fails() -> None:
    async def broken(ch: Channel[int]) -> None:
        await ch.send(1)
        raise RuntimeError("producer broke")

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        ch, job = produce(runner, broken, capacity=4)
        got = [v async for v in ch]

    assert got == [1]
    assert job.state == TaskState.FAILED


@pytest.mark.asyncio
async def test_produce_cancelled_before_start_closes_channel() -> None:
    async def never(ch: Channel[int]) -> None:
        await ch.send(1)

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        ch, job = produce(runner, never, capacity=4)
        job.cancel()
        got = [v async for v in ch]

    assert got == []
    assert job.is_cancelled


@pytest.mark.asyncio
async def test_merge_fans_in_all_sources() -> None:
    a: Channel[int] = Channel(2)
    b: Channel[int] = Channel(2)

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        merged = merge(runner, a, b, capacity=3, name="merged")
        runner.launch(send_all(a, [1, 3, 5], close=True))
        runner.launch(send_all(b, [2, 4, 6], close=True))
        got = [v async for v in merged]

    assert sorted(got) == [1, 2, 3, 4, 5, 6]
    assert [v for v in got if v % 2] == [1, 3, 5]
    assert [v for v in got if not v % 2] == [2, 4, 6]


@pytest.mark.asyncio
async def test_merge_without_sources_is_closed() -> None:
    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        merged: Channel[int] = merge(runner)
        await asyncio.sleep(0)

    assert merged.is_closed_for_receive


@pytest.mark.asyncio
async def test_close_during_send_fails_the_sender() -> None:
    bus: BroadcastChannel[int] = BroadcastChannel(name="bus")
    roomy = bus.subscribe(capacity=4)
    tight = bus.subscribe(capacity=1)
    assert bus.try_send(0)

    async with TaskRunner(join_timeout=JOIN_TIMEOUT) as runner:
        sender = runner.launch(bus.send(1))
        await asyncio.sleep(0)
        bus.close()

    assert sender.state == TaskState.FAILED
    assert isinstance(sender.exception(), ClosedSendChannelFailure)
    assert roomy.drain() == [0, 1]
    assert tight.drain() == [0]
