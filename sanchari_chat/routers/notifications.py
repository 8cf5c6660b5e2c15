from fastapi import APIRouter, Depends, status

from sanchari_chat.schemas.notification import NotificationCreate, NotificationRecord, NotificationsRead
from sanchari_chat.services.notification_service import NotificationService
from sanchari_chat.utils.dependencies import get_current_user_id, get_notification_service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(user_id: str = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)):
    return {"items": await service.get_notifications(user_id)}


@router.get("/unread")
async def unread_count(user_id: str = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)):
    return {"count": await service.get_unread_count(user_id)}


@router.post("/read")
async def mark_read(body: NotificationsRead, user_id: str = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)):
    if body.ids:
        updated = await service.mark_notifications_read(user_id, body.ids)
    else:
        updated = await service.mark_read(user_id)
    return {"updated": updated}


@router.post("", response_model=NotificationRecord, status_code=status.HTTP_201_CREATED)
async def record_notification(body: NotificationCreate, user_id: str = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)):
    return await service.record_notification(
        body.recipient_id,
        body.type,
        user_id,
        target_id=body.target_id,
        actor_name=body.actor_name,
        text=body.text,
        preview_image=body.preview_image,
    )
