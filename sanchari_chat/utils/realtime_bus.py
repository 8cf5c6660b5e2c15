import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from sanchari_chat.config import settings


logger = logging.getLogger(__name__)

MessageHandler = Callable[[str], Awaitable[None]]


def conversation_channel(chat_id: str) -> str:
    return f"conversation:{chat_id}"


def user_conversations_channel(user_id: str) -> str:
    return f"user-conversations:{user_id}"


def group_channel(group_id: str) -> str:
    return f"group:{group_id}"


def user_groups_channel(user_id: str) -> str:
    return f"user-groups:{user_id}"


def notifications_channel(user_id: str) -> str:
    return f"notifications:{user_id}"


class LocalBus:
    """In-process fan-out, used when no Redis is configured."""

    enabled = False

    def __init__(self) -> None:
        self._handlers: Dict[str, List[MessageHandler]] = {}

    async def publish(self, channel: str, message: str) -> None:
        for handler in list(self._handlers.get(channel, [])):
            try:
                await handler(message)
            except Exception:
                logger.exception("Handler for %s failed", channel)

    async def subscribe(self, channel: str, on_message: MessageHandler):
        handlers = self._handlers.setdefault(channel, [])
        handlers.append(on_message)
        bus = self

        class _Sub:
            async def run(self_inner):
                await asyncio.Future()

            async def cancel(self_inner):
                bus._remove(channel, on_message)

        return _Sub()

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, []))

    def _remove(self, channel: str, on_message: MessageHandler) -> None:
        handlers = self._handlers.get(channel)
        if not handlers:
            return
        try:
            handlers.remove(on_message)
        except ValueError:
            pass
        if not handlers:
            del self._handlers[channel]


class RedisBus:

    def __init__(self, url: str) -> None:
        import redis.asyncio as redis

        self._redis = redis.from_url(url)
        self.enabled = True

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: MessageHandler):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                        if msg and msg.get("type") == "message":
                            data = msg.get("data")
                            if isinstance(data, bytes):
                                data = data.decode("utf-8")
                            await on_message(data)
                    except asyncio.CancelledError:
                        raise
                    except Exception:
                        logger.warning("Redis subscription on %s interrupted, retrying", channel, exc_info=True)
                        await asyncio.sleep(0.5)

            async def cancel(self_inner):
                self_inner._running = False
                try:
                    await pubsub.unsubscribe(channel)
                    await pubsub.aclose()
                except Exception:
                    logger.debug("Redis unsubscribe from %s failed", channel, exc_info=True)

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url: Optional[str] = settings.redis_url
    if not url:
        _bus = LocalBus()
        return _bus
    _bus = RedisBus(url)
    logger.info("Realtime bus backed by Redis")
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None and getattr(_bus, "enabled", False):
        await _bus.close()
    _bus = None
