from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from sanchari_chat.database.connection import mongo_db_dependency
from sanchari_chat.database.transactions import TransactionManager, get_transaction_manager
from sanchari_chat.repositories.conversation_repository import ConversationRepository
from sanchari_chat.repositories.group_message_repository import GroupMessageRepository
from sanchari_chat.repositories.group_repository import GroupRepository
from sanchari_chat.repositories.message_repository import MessageRepository
from sanchari_chat.repositories.notification_repository import NotificationRepository
from sanchari_chat.services.chat_service import ChatService
from sanchari_chat.services.group_service import GroupService
from sanchari_chat.services.notification_service import NotificationService
from sanchari_chat.utils.realtime_bus import get_bus
from sanchari_chat.utils.security import InvalidToken, user_id_from_token


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return user_id_from_token(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def get_transactions() -> TransactionManager:
    return get_transaction_manager()


def get_chat_service(
    db: AsyncIOMotorDatabase = Depends(mongo_db_dependency),
    transactions: TransactionManager = Depends(get_transactions),
    bus=Depends(get_bus),
) -> ChatService:
    return ChatService(ConversationRepository(db), MessageRepository(db), transactions, bus)


def get_group_service(
    db: AsyncIOMotorDatabase = Depends(mongo_db_dependency),
    transactions: TransactionManager = Depends(get_transactions),
    bus=Depends(get_bus),
) -> GroupService:
    return GroupService(GroupRepository(db), GroupMessageRepository(db), transactions, bus)


def get_notification_service(
    db: AsyncIOMotorDatabase = Depends(mongo_db_dependency),
    bus=Depends(get_bus),
) -> NotificationService:
    return NotificationService(NotificationRepository(db), bus)
