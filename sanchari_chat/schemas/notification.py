from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationRecord(BaseModel):
    """One raw event: somebody liked, commented on, or followed something."""

    id: str
    recipient_id: str
    type: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    target_id: Optional[str] = None
    text: Optional[str] = None
    preview_image: Optional[str] = None
    read: bool = False
    timestamp: datetime


class AggregatedNotification(BaseModel):
    """Display unit for every record sharing ``(type, target_id)``."""

    id: str
    type: str
    target_id: Optional[str] = None
    count: int
    # distinct actor ids, most recent first
    actors: List[str] = Field(default_factory=list)
    doc_ids: List[str] = Field(default_factory=list)
    read: bool
    timestamp: datetime
    actor_name: Optional[str] = None
    text: Optional[str] = None
    preview_image: Optional[str] = None
    message: str = ""


class NotificationCreate(BaseModel):

    recipient_id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    target_id: Optional[str] = None
    actor_name: Optional[str] = None
    text: Optional[str] = None
    preview_image: Optional[str] = None


class NotificationsRead(BaseModel):

    ids: Optional[List[str]] = None
