from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING

from sanchari_chat.models.notification import NotificationDocument
from sanchari_chat.repositories.base_repository import BaseRepository


class NotificationRepository(BaseRepository):

    collection_name = "notifications"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
        await self.collection.create_index([("recipient_id", ASCENDING), ("read", ASCENDING)])

    async def save_notification(self, doc: NotificationDocument) -> NotificationDocument:
        return await self._insert_stamped({**doc, "read": False}, "created_at")

    async def list_for_user(self, recipient_id: str, limit: int = 100) -> List[NotificationDocument]:
        cursor = (
            self.collection.find({"recipient_id": recipient_id})
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .limit(limit)
        )
        return await cursor.to_list(length=limit)

    async def mark_all_read(self, recipient_id: str) -> int:
        result = await self.collection.update_many(
            {"recipient_id": recipient_id, "read": False},
            {"$set": {"read": True}, "$currentDate": {"read_at": True}},
        )
        return result.modified_count or 0

    async def mark_read(self, recipient_id: str, notification_ids: List[str]) -> int:
        oids = [oid for oid in (self._to_object_id(i) for i in notification_ids) if oid is not None]
        if not oids:
            return 0
        result = await self.collection.update_many(
            {"recipient_id": recipient_id, "_id": {"$in": oids}, "read": False},
            {"$set": {"read": True}, "$currentDate": {"read_at": True}},
        )
        return result.modified_count or 0

    async def count_unread(self, recipient_id: str, exclude_types: Optional[List[str]] = None) -> int:
        query: Dict[str, Any] = {"recipient_id": recipient_id, "read": False}
        if exclude_types:
            query["type"] = {"$nin": exclude_types}
        return await self.collection.count_documents(query)
