"""Standing queries over the realtime bus.

A :class:`Subscription` loads a snapshot, hands it to the callback, and loads
again whenever a change event arrives on one of its bus channels. Stores
publish those events after their writes commit, so every reload observes
committed state only.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from sanchari_chat.config import settings
from sanchari_chat.exceptions import TransportError


logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]
SnapshotCallback = Callable[[Any], Any]

_NOTHING = object()


class Subscription:
    """Handle for a live query.

    Calling the subscription (or awaiting :meth:`close`) disposes it. Without
    a callback the snapshots are consumed with ``async for``; a slow consumer
    only ever sees the newest one.
    """

    def __init__(
        self,
        name: str,
        loader: Optional[Loader] = None,
        callback: Optional[SnapshotCallback] = None,
        empty: Callable[[], Any] = list,
        retry_initial: Optional[float] = None,
        retry_max: Optional[float] = None,
    ) -> None:
        self.name = name
        self._loader = loader
        self._callback = callback
        self._empty = empty
        self._retry_initial = retry_initial if retry_initial is not None else settings.subscription_retry_initial
        self._retry_max = retry_max if retry_max is not None else settings.subscription_retry_max
        self._changed = asyncio.Event()
        self._closed = False
        self._task: Optional[asyncio.Task] = None
        self._bus_subs: List[Any] = []
        self._runners: List[asyncio.Task] = []
        # iterator mode keeps at most one undelivered snapshot
        self._latest: Any = _NOTHING
        self._ready = asyncio.Event()

    @classmethod
    def inert(cls, name: str) -> "Subscription":
        sub = cls(name, callback=lambda snapshot: None)
        sub._closed = True
        return sub

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self, bus, channels: Iterable[str]) -> "Subscription":
        for channel in channels:
            bus_sub = await bus.subscribe(channel, self._on_change)
            self._bus_subs.append(bus_sub)
            self._runners.append(asyncio.create_task(bus_sub.run()))
        self._changed.set()
        self._task = asyncio.create_task(self._run())
        return self

    async def _on_change(self, message: str) -> None:
        self._changed.set()

    async def _run(self) -> None:
        delay = self._retry_initial
        while not self._closed:
            await self._changed.wait()
            self._changed.clear()
            try:
                snapshot = await self._loader()
            except (PyMongoError, TransportError) as exc:
                logger.warning("Subscription %s failed to load, retrying in %.1fs: %s", self.name, delay, exc)
            except Exception:
                logger.exception("Subscription %s failed to load, retrying in %.1fs", self.name, delay)
            else:
                delay = self._retry_initial
                await self._deliver(snapshot)
                continue
            await self._deliver(self._empty())
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._retry_max)
            self._changed.set()

    async def _deliver(self, snapshot: Any) -> None:
        if self._closed:
            return
        if self._callback is None:
            self._latest = snapshot
            self._ready.set()
            return
        try:
            result = self._callback(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscription %s callback failed", self.name)

    @property
    def has_pending(self) -> bool:
        return self._latest is not _NOTHING

    def __call__(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._ready.set()
        current = asyncio.current_task()
        for task in [self._task, *self._runners]:
            if task is not None and task is not current:
                task.cancel()
        if self._bus_subs:
            asyncio.get_running_loop().create_task(self._release())

    async def close(self) -> None:
        self()
        await self._release()

    async def _release(self) -> None:
        subs, self._bus_subs = self._bus_subs, []
        for bus_sub in subs:
            try:
                await bus_sub.cancel()
            except RedisError:
                logger.warning("Subscription %s could not release its bus channel", self.name, exc_info=True)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._callback is not None:
            if self._closed:
                raise StopAsyncIteration
            raise TypeError("subscription delivers to a callback")
        while True:
            if self._latest is not _NOTHING:
                snapshot, self._latest = self._latest, _NOTHING
                return snapshot
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()


async def subscribe(
    bus,
    channels: Iterable[str],
    loader: Loader,
    callback: Optional[SnapshotCallback] = None,
    name: str = "",
    empty: Callable[[], Any] = list,
) -> Subscription:
    channels = list(channels)
    sub = Subscription(name or ",".join(channels), loader, callback, empty=empty)
    return await sub.start(bus, channels)


async def publish_change(bus, channels: Iterable[str], event: str, **payload: Any) -> None:
    """Announce a committed change. A bus outage never fails the write."""
    message = json.dumps({"event": event, **payload}, default=str)
    for channel in channels:
        try:
            await bus.publish(channel, message)
        except (RedisError, OSError):
            logger.warning("Could not publish %s on %s", event, channel, exc_info=True)
