import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from sanchari_chat.services.chat_service import ChatService
from sanchari_chat.services.group_service import GroupService
from sanchari_chat.services.notification_service import NotificationService
from sanchari_chat.utils.dependencies import get_chat_service, get_group_service, get_notification_service
from sanchari_chat.utils.security import InvalidToken, user_id_from_token
from sanchari_chat.utils.websocket_manager import ConnectionManager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["realtime"])
manager = ConnectionManager()

UNAUTHORIZED = 4401
FORBIDDEN = 4403


async def _authenticate(websocket: WebSocket) -> Optional[str]:
    # browsers cannot set headers on a websocket handshake: token via ?token=...
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=UNAUTHORIZED)
        return None
    try:
        return user_id_from_token(token)
    except InvalidToken:
        await websocket.close(code=UNAUTHORIZED)
        return None


async def _stream(user_id: str, websocket: WebSocket, open_subscription) -> None:
    await manager.connect(user_id, websocket, open_subscription)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Socket for %s disconnected", user_id)
    finally:
        await manager.disconnect(user_id, websocket)


@router.websocket("/conversations")
async def conversations_socket(websocket: WebSocket, service: ChatService = Depends(get_chat_service)):
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    await _stream(user_id, websocket, lambda cb: service.listen_to_user_conversations(user_id, cb))


@router.websocket("/conversations/{chat_id}")
async def messages_socket(websocket: WebSocket, chat_id: str, service: ChatService = Depends(get_chat_service)):
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    chat = await service.get_chat(chat_id)
    if chat is None or user_id not in chat.members:
        await websocket.close(code=FORBIDDEN)
        return
    await _stream(user_id, websocket, lambda cb: service.listen_to_messages(chat_id, cb))


@router.websocket("/groups")
async def groups_socket(websocket: WebSocket, service: GroupService = Depends(get_group_service)):
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    await _stream(user_id, websocket, lambda cb: service.listen_to_user_groups(user_id, cb))


@router.websocket("/groups/{group_id}")
async def group_messages_socket(websocket: WebSocket, group_id: str, service: GroupService = Depends(get_group_service)):
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    group = await service.get_group(group_id)
    if group is None or not group.is_member(user_id):
        await websocket.close(code=FORBIDDEN)
        return
    await _stream(user_id, websocket, lambda cb: service.listen_to_group_messages(group_id, cb))


@router.websocket("/notifications")
async def notifications_socket(websocket: WebSocket, service: NotificationService = Depends(get_notification_service)):
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    await _stream(user_id, websocket, lambda cb: service.listen_to_notifications(user_id, cb))
