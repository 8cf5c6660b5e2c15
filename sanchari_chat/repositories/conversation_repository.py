from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING

from sanchari_chat.models.conversation import ConversationDocument
from sanchari_chat.repositories.base_repository import BaseRepository


class ConversationRepository(BaseRepository):

    collection_name = "conversations"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("members", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING)])

    async def get(self, chat_id: str, session: Optional[AsyncIOMotorClientSession] = None) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"_id": chat_id}, session=session)

    async def create_if_absent(
        self,
        chat_id: str,
        members: List[str],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        """Create the chat unless it exists. Returns True when this call created it.

        One upsert writes members and both timestamps, so a concurrent reader
        sees either no chat or a complete one.
        """
        now = datetime.now(timezone.utc)
        result = await self.collection.update_one(
            {"_id": chat_id},
            {"$setOnInsert": {"members": members, "created_at": now, "updated_at": now}},
            upsert=True,
            session=session,
        )
        return result.upserted_id is not None

    async def set_last_message(
        self,
        chat_id: str,
        text: str,
        sender_id: str,
        created_at,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        result = await self.collection.update_one(
            {"_id": chat_id},
            {
                "$set": {
                    "last_message": {"text": text, "sender_id": sender_id, "created_at": created_at},
                },
                # never moves backwards
                "$max": {"updated_at": created_at},
            },
            session=session,
        )
        return result.matched_count > 0

    async def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> List[ConversationDocument]:
        cursor = self.collection.find({"members": user_id}, session=session).sort(
            [("updated_at", DESCENDING), ("_id", DESCENDING)]
        )
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)
