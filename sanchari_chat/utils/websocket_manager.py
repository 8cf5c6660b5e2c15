import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from sanchari_chat.services.subscriptions import SnapshotCallback, Subscription


logger = logging.getLogger(__name__)

SubscriptionFactory = Callable[[SnapshotCallback], Awaitable[Subscription]]


class ConnectionManager:
    """Open sockets per user, each paired with the subscription feeding it."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[Tuple[WebSocket, Subscription]]] = {}

    async def connect(self, user_id: str, websocket: WebSocket, open_subscription: SubscriptionFactory) -> Subscription:
        await websocket.accept()

        async def send_snapshot(snapshot: Any) -> None:
            await websocket.send_text(json.dumps(jsonable_encoder(snapshot)))

        subscription = await open_subscription(send_snapshot)
        self.active_connections.setdefault(user_id, []).append((websocket, subscription))
        return subscription

    async def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        entries = self.active_connections.get(user_id, [])
        for entry in [e for e in entries if e[0] is websocket]:
            entries.remove(entry)
            await entry[1].close()
        if not entries:
            self.active_connections.pop(user_id, None)

    def connection_count(self, user_id: str) -> int:
        return len(self.active_connections.get(user_id, []))

    async def close_all(self) -> None:
        for user_id in list(self.active_connections):
            for websocket, _ in list(self.active_connections.get(user_id, [])):
                await self.disconnect(user_id, websocket)
        logger.info("Closed all realtime subscriptions")
