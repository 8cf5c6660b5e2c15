from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import ReturnDocument


class BaseRepository:

    collection_name: str = ""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[self.collection_name]

    async def _insert_stamped(
        self,
        doc: Dict[str, Any],
        *stamp_fields: str,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Dict[str, Any]:
        """Insert ``doc`` with ``stamp_fields`` set from the server clock.

        Written as an upsert on a fresh ObjectId so ``$currentDate`` can be used;
        returns the stored document including the assigned timestamps.
        """
        update: Dict[str, Any] = {"$setOnInsert": doc}
        if stamp_fields:
            update["$currentDate"] = {field: True for field in stamp_fields}
        return await self.collection.find_one_and_update(
            {"_id": ObjectId()},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    @staticmethod
    def _to_object_id(value: Any) -> Optional[ObjectId]:
        if isinstance(value, ObjectId):
            return value
        try:
            return ObjectId(value)
        except (InvalidId, TypeError):
            return None
