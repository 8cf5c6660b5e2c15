from datetime import datetime
from typing import Optional, TypedDict

from bson import ObjectId


class NotificationDocument(TypedDict, total=False):
    _id: ObjectId
    recipient_id: str
    # like, comment, follow, message, ...
    type: str
    actor_id: str
    actor_name: Optional[str]
    # post id for likes and comments, the actor for follows
    target_id: Optional[str]
    text: Optional[str]
    preview_image: Optional[str]
    read: bool
    read_at: Optional[datetime]
    created_at: datetime
