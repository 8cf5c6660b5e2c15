from typing import Any, Dict, Iterable, List, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from sanchari_chat.models.group import GroupDocument
from sanchari_chat.repositories.base_repository import BaseRepository


class GroupRepository(BaseRepository):

    collection_name = "groups"

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("members", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING)])

    async def create_group(
        self,
        name: str,
        image: Optional[str],
        created_by: str,
        members: List[str],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> GroupDocument:
        doc: GroupDocument = {
            "name": name,
            "image": image,
            "created_by": created_by,
            "members": members,
            "admins": [created_by],
            "unread_counts": {},
        }
        return await self._insert_stamped(doc, "created_at", "updated_at", session=session)

    async def get(self, group_id: str, session: Optional[AsyncIOMotorClientSession] = None) -> Optional[GroupDocument]:
        oid = self._to_object_id(group_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid}, session=session)

    async def _update(
        self,
        group_id: str,
        update: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[GroupDocument]:
        oid = self._to_object_id(group_id)
        if oid is None:
            return None
        update.setdefault("$currentDate", {})["updated_at"] = True
        return await self.collection.find_one_and_update(
            {"_id": oid},
            update,
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    async def add_members(self, group_id: str, members: Iterable[str]) -> Optional[GroupDocument]:
        return await self._update(group_id, {"$addToSet": {"members": {"$each": list(members)}}})

    async def remove_member(
        self,
        group_id: str,
        user_id: str,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[GroupDocument]:
        return await self._update(
            group_id,
            {
                "$pull": {"members": user_id, "admins": user_id},
                "$unset": {f"unread_counts.{user_id}": ""},
            },
            session=session,
        )

    async def add_admin(self, group_id: str, user_id: str) -> Optional[GroupDocument]:
        return await self._update(group_id, {"$addToSet": {"admins": user_id}})

    async def update_fields(self, group_id: str, fields: Dict[str, Any]) -> Optional[GroupDocument]:
        if not fields:
            return await self.get(group_id)
        return await self._update(group_id, {"$set": dict(fields)})

    async def record_message(
        self,
        group_id: str,
        text: str,
        sender_id: str,
        created_at,
        unread_counts: Mapping[str, int],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[GroupDocument]:
        """Write the last-message summary and the recipients' new counters.

        ``unread_counts`` holds the values computed from the group as read in
        the same transaction; they are stored as given. The sender's own entry
        is cleared.
        """
        fields: Dict[str, Any] = {
            "last_message": text,
            "last_message_at": created_at,
            "last_sender_id": sender_id,
        }
        for user_id, count in unread_counts.items():
            if user_id != sender_id:
                fields[f"unread_counts.{user_id}"] = count
        update: Dict[str, Any] = {
            "$set": fields,
            "$max": {"updated_at": created_at},
            "$unset": {f"unread_counts.{sender_id}": ""},
        }
        oid = self._to_object_id(group_id)
        return await self.collection.find_one_and_update(
            {"_id": oid},
            update,
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    async def reset_unread(self, group_id: str, user_id: str) -> bool:
        oid = self._to_object_id(group_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "members": user_id},
            {"$set": {f"unread_counts.{user_id}": 0}},
        )
        return result.matched_count > 0

    async def delete(self, group_id: str, session: Optional[AsyncIOMotorClientSession] = None) -> bool:
        oid = self._to_object_id(group_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid}, session=session)
        return result.deleted_count > 0

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[GroupDocument]:
        cursor = self.collection.find({"members": user_id}).sort([("updated_at", DESCENDING), ("_id", DESCENDING)])
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)
