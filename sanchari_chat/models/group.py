from datetime import datetime
from typing import Dict, List, Optional, TypedDict

from bson import ObjectId


class GroupDocument(TypedDict, total=False):
    _id: ObjectId
    name: str
    image: Optional[str]
    created_by: str
    members: List[str]
    # subset of members, never empty
    admins: List[str]
    # user_id -> unread count, no entry for the last sender
    unread_counts: Dict[str, int]
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    last_sender_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class GroupMessageDocument(TypedDict, total=False):
    _id: ObjectId
    group_id: str
    sender_id: str
    sender_name: str
    text: str
    created_at: datetime
