import asyncio

import pytest
from pymongo.errors import AutoReconnect

from sanchari_chat.services.subscriptions import Subscription, publish_change, subscribe


async def wait_until(condition, timeout=2.0):
    async def poll():
        while not condition():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


async def test_callback_receives_initial_and_changed_snapshots(bus):
    state = {"value": 1}
    received = []

    async def load():
        return state["value"]

    subscription = await subscribe(bus, ["things"], load, received.append)
    await wait_until(lambda: received == [1])

    state["value"] = 2
    await publish_change(bus, ["things"], "changed")
    await wait_until(lambda: received[-1] == 2)
    await subscription.close()


async def test_coroutine_callbacks_are_awaited(bus):
    received = []

    async def on_snapshot(snapshot):
        await asyncio.sleep(0)
        received.append(snapshot)

    async def load():
        return ["x"]

    subscription = await subscribe(bus, ["things"], load, on_snapshot)
    await wait_until(lambda: received == [["x"]])
    await subscription.close()


async def test_failing_callback_keeps_subscription_alive(bus):
    calls = []

    def explode(snapshot):
        calls.append(snapshot)
        raise RuntimeError("boom")

    counter = {"n": 0}

    async def load():
        counter["n"] += 1
        return counter["n"]

    subscription = await subscribe(bus, ["things"], load, explode)
    await wait_until(lambda: len(calls) == 1)
    await publish_change(bus, ["things"], "changed")
    await wait_until(lambda: len(calls) == 2)
    assert not subscription.closed
    await subscription.close()


async def test_transport_error_delivers_empty_then_retries(bus, fast_retries):
    attempts = {"n": 0}
    received = []

    async def load():
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise AutoReconnect("primary stepped down")
        return ["recovered"]

    subscription = await subscribe(bus, ["things"], load, received.append)
    await wait_until(lambda: received == [[], ["recovered"]])
    await subscription.close()


async def test_unexpected_loader_error_delivers_empty_then_retries(bus, fast_retries):
    attempts = {"n": 0}
    received = []

    async def load():
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise ValueError("unexpected document shape")
        return ["ok"]

    subscription = await subscribe(bus, ["things"], load, received.append)
    await wait_until(lambda: received == [[], ["ok"]])
    assert not subscription.closed
    await subscription.close()


async def test_transport_error_uses_custom_empty_value(bus, fast_retries):
    received = []

    async def load():
        raise AutoReconnect("down")

    subscription = await subscribe(bus, ["thing"], load, received.append, empty=lambda: None)
    await wait_until(lambda: len(received) >= 2)
    await subscription.close()
    assert set(received) == {None}


async def test_dispose_stops_deliveries_and_releases_channels(bus):
    received = []

    async def load():
        return len(received)

    subscription = await subscribe(bus, ["a", "b"], load, received.append)
    await wait_until(lambda: len(received) == 1)
    assert bus.subscriber_count("a") == 1

    await subscription.close()
    await subscription.close()
    assert bus.subscriber_count("a") == 0
    assert bus.subscriber_count("b") == 0

    await publish_change(bus, ["a"], "changed")
    await asyncio.sleep(0.02)
    assert received == [0]


async def test_calling_subscription_disposes_it(bus):
    async def load():
        return 1

    subscription = await subscribe(bus, ["a"], load, lambda s: None)
    subscription()
    await wait_until(lambda: bus.subscriber_count("a") == 0)
    assert subscription.closed


async def test_async_iteration_ends_on_close(bus):
    async def load():
        return "snap"

    subscription = await subscribe(bus, ["a"], load)
    seen = []

    async def consume():
        async for snapshot in subscription:
            seen.append(snapshot)

    consumer = asyncio.create_task(consume())
    await wait_until(lambda: seen == ["snap"])
    await subscription.close()
    await asyncio.wait_for(consumer, 1)


async def test_slow_consumer_only_sees_newest_snapshot(bus):
    loads = {"n": 0}

    async def load():
        loads["n"] += 1
        return loads["n"]

    subscription = await subscribe(bus, ["a"], load)
    await wait_until(lambda: subscription.has_pending)
    for _ in range(20):
        await publish_change(bus, ["a"], "changed")
        await asyncio.sleep(0.001)
    await wait_until(lambda: loads["n"] >= 2)
    await asyncio.sleep(0.05)

    latest = loads["n"]
    assert await subscription.__anext__() == latest
    assert not subscription.has_pending
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(subscription.__anext__(), 0.05)
    await subscription.close()


def test_inert_subscription_is_closed():
    subscription = Subscription.inert("nothing")
    assert subscription.closed
    subscription()


async def test_callback_subscription_is_not_iterable(bus):
    async def load():
        return 1

    subscription = await subscribe(bus, ["a"], load, lambda s: None)
    with pytest.raises(TypeError):
        await subscription.__anext__()
    await subscription.close()
