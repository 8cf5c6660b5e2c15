from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from sanchari_chat.exceptions import NotAMember, NotFound
from sanchari_chat.schemas.conversation import Conversation, ConversationCreate, Message, MessageCreate
from sanchari_chat.services.chat_service import ChatService
from sanchari_chat.utils.dependencies import get_chat_service, get_current_user_id


router = APIRouter(prefix="/conversations", tags=["conversations"])


async def _member_chat(chat_id: str, user_id: str, service: ChatService) -> Conversation:
    chat = await service.get_chat(chat_id)
    if chat is None:
        raise NotFound(f"chat {chat_id} not found")
    if user_id not in chat.members:
        raise NotAMember(f"{user_id} is not a member of chat {chat_id}")
    return chat


@router.post("", response_model=Conversation)
async def open_conversation(body: ConversationCreate, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    return await service.get_or_create_chat(user_id, body.peer_id)


@router.get("")
async def list_conversations(user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    items = await service.get_user_chats(user_id)
    return {"items": items}


@router.get("/{chat_id}", response_model=Conversation)
async def get_conversation(chat_id: str, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    return await _member_chat(chat_id, user_id, service)


@router.get("/{chat_id}/messages")
async def list_messages(chat_id: str, limit: int = Query(50, ge=1, le=200), before: Optional[str] = None, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _member_chat(chat_id, user_id, service)
    messages = await service.get_messages(chat_id, limit=limit, before=before)
    next_cursor = messages[0].id if len(messages) == limit else None
    return {"items": messages, "next_cursor": next_cursor}


@router.post("/{chat_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(chat_id: str, body: MessageCreate, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    return await service.send_message(chat_id, user_id, body.text)


@router.post("/{chat_id}/messages/{message_id}/seen")
async def mark_message_seen(chat_id: str, message_id: str, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _member_chat(chat_id, user_id, service)
    await service.mark_message_seen(chat_id, message_id, user_id)
    return {"ok": True}


@router.post("/{chat_id}/seen")
async def mark_conversation_seen(chat_id: str, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _member_chat(chat_id, user_id, service)
    updated = await service.mark_all_messages_seen(chat_id, user_id)
    return {"updated": updated}


@router.get("/{chat_id}/unread")
async def unread_count(chat_id: str, user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    await _member_chat(chat_id, user_id, service)
    return {"count": await service.get_unread_count(chat_id, user_id)}
