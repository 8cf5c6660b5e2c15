from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING

from sanchari_chat.models.group import GroupMessageDocument
from sanchari_chat.repositories.base_repository import BaseRepository


class GroupMessageRepository(BaseRepository):

    collection_name = "group_messages"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("group_id", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)])

    async def save_message(
        self,
        group_id: str,
        sender_id: str,
        sender_name: str,
        text: str,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> GroupMessageDocument:
        doc: GroupMessageDocument = {
            "group_id": group_id,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "text": text,
        }
        return await self._insert_stamped(doc, "created_at", session=session)

    async def get_messages_by_group(self, group_id: str, limit: Optional[int] = None) -> List[GroupMessageDocument]:
        if not limit:
            cursor = self.collection.find({"group_id": group_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
            return await cursor.to_list(length=None)
        cursor = (
            self.collection.find({"group_id": group_id})
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .limit(limit)
        )
        items = await cursor.to_list(length=limit)
        return list(reversed(items))

    async def delete_by_group(self, group_id: str, session: Optional[AsyncIOMotorClientSession] = None) -> int:
        result = await self.collection.delete_many({"group_id": group_id}, session=session)
        return result.deleted_count or 0
