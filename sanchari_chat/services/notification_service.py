import logging
from typing import List, Optional

from sanchari_chat.exceptions import require, store_errors
from sanchari_chat.models.notification import NotificationDocument
from sanchari_chat.repositories.notification_repository import NotificationRepository
from sanchari_chat.schemas.notification import AggregatedNotification, NotificationRecord
from sanchari_chat.services.notification_aggregator import EXCLUDED_TYPES, aggregate_notifications
from sanchari_chat.services.subscriptions import SnapshotCallback, Subscription, publish_change, subscribe
from sanchari_chat.utils.normalize import normalize_notification
from sanchari_chat.utils.realtime_bus import notifications_channel


logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, repo: NotificationRepository, bus, fetch_limit: int = 100) -> None:
        self._repo = repo
        self._bus = bus
        self._fetch_limit = fetch_limit

    async def record_notification(
        self,
        recipient_id: str,
        notification_type: str,
        actor_id: str,
        target_id: Optional[str] = None,
        actor_name: Optional[str] = None,
        text: Optional[str] = None,
        preview_image: Optional[str] = None,
    ) -> NotificationRecord:
        require(recipient_id=recipient_id, type=notification_type, actor_id=actor_id)
        doc: NotificationDocument = {
            "recipient_id": recipient_id,
            "type": notification_type.lower(),
            "actor_id": actor_id,
            "actor_name": actor_name,
            "target_id": target_id,
            "text": text,
            "preview_image": preview_image,
        }
        with store_errors("record notification"):
            saved = await self._repo.save_notification(doc)
        await publish_change(self._bus, [notifications_channel(recipient_id)], "notification")
        return normalize_notification(saved)

    async def _load(self, user_id: str) -> List[AggregatedNotification]:
        docs = await self._repo.list_for_user(user_id, limit=self._fetch_limit)
        return aggregate_notifications(normalize_notification(d) for d in docs)

    async def get_notifications(self, user_id: str) -> List[AggregatedNotification]:
        require(user_id=user_id)
        with store_errors("read notifications"):
            return await self._load(user_id)

    async def get_unread_count(self, user_id: str) -> int:
        require(user_id=user_id)
        with store_errors("count notifications"):
            return await self._repo.count_unread(user_id, exclude_types=sorted(EXCLUDED_TYPES))

    async def mark_read(self, user_id: str) -> int:
        """Mark every unread notification read. Safe to call repeatedly."""
        require(user_id=user_id)
        with store_errors("mark notifications read"):
            updated = await self._repo.mark_all_read(user_id)
        if updated:
            await publish_change(self._bus, [notifications_channel(user_id)], "read")
        return updated

    async def mark_notifications_read(self, user_id: str, notification_ids: List[str]) -> int:
        require(user_id=user_id)
        with store_errors("mark notifications read"):
            updated = await self._repo.mark_read(user_id, notification_ids)
        if updated:
            await publish_change(self._bus, [notifications_channel(user_id)], "read")
        return updated

    async def listen_to_notifications(self, user_id: str, callback: Optional[SnapshotCallback] = None) -> Subscription:
        if not user_id:
            logger.warning("Refusing to listen to notifications without a user id")
            return Subscription.inert("notifications:")
        return await subscribe(
            self._bus,
            [notifications_channel(user_id)],
            lambda: self._load(user_id),
            callback,
            name=f"notifications:{user_id}",
        )
