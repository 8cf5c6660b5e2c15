from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING

from sanchari_chat.models.message import MessageDocument
from sanchari_chat.repositories.base_repository import BaseRepository


class MessageRepository(BaseRepository):

    collection_name = "messages"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)])

    async def save_message(
        self,
        conversation_id: str,
        sender_id: str,
        text: str,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "text": text,
            "seen_by": [sender_id],
        }
        return await self._insert_stamped(doc, "created_at", session=session)

    async def get(self, conversation_id: str, message_id: str) -> Optional[MessageDocument]:
        oid = self._to_object_id(message_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid, "conversation_id": conversation_id})

    async def get_messages_by_conversation(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        before: Optional[str] = None,
    ) -> List[MessageDocument]:
        """Messages oldest first; with ``limit`` only the newest ``limit`` of them."""
        query: Dict[str, Any] = {"conversation_id": conversation_id}
        if before:
            anchor = await self.get(conversation_id, before)
            if anchor is None:
                return []
            query["$or"] = [
                {"created_at": {"$lt": anchor["created_at"]}},
                {"created_at": anchor["created_at"], "_id": {"$lt": anchor["_id"]}},
            ]
        if not limit:
            cursor = self.collection.find(query).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            return await cursor.to_list(length=None)
        cursor = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        return list(reversed(items))

    async def mark_seen(self, conversation_id: str, message_id: str, user_id: str) -> bool:
        oid = self._to_object_id(message_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "conversation_id": conversation_id},
            {"$addToSet": {"seen_by": user_id}},
        )
        return result.matched_count > 0

    async def mark_all_seen(self, conversation_id: str, user_id: str) -> int:
        result = await self.collection.update_many(
            {"conversation_id": conversation_id, "seen_by": {"$ne": user_id}},
            {"$addToSet": {"seen_by": user_id}},
        )
        return result.modified_count or 0

    async def count_unread(self, conversation_id: str, user_id: str) -> int:
        return await self.collection.count_documents(
            {"conversation_id": conversation_id, "sender_id": {"$ne": user_id}, "seen_by": {"$ne": user_id}}
        )
