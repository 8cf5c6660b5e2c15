import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from sanchari_chat.config import settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    if _client is not None:
        return
    _client = AsyncIOMotorClient(settings.mongo_url, tz_aware=True)
    logger.info("Connected to MongoDB database %s", settings.mongo_db_name)
    await ensure_indexes(get_database())


async def close_mongo_connection() -> None:
    global _client
    if _client is None:
        return
    _client.close()
    _client = None
    logger.info("MongoDB connection closed")


def get_client() -> AsyncIOMotorClient:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected")
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[settings.mongo_db_name]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    from sanchari_chat.repositories.conversation_repository import ConversationRepository
    from sanchari_chat.repositories.group_message_repository import GroupMessageRepository
    from sanchari_chat.repositories.group_repository import GroupRepository
    from sanchari_chat.repositories.message_repository import MessageRepository
    from sanchari_chat.repositories.notification_repository import NotificationRepository

    for repo in (
        ConversationRepository(db),
        MessageRepository(db),
        GroupRepository(db),
        GroupMessageRepository(db),
        NotificationRepository(db),
    ):
        await repo.ensure_indexes()
