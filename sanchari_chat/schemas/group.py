from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Group(BaseModel):

    id: str
    name: str
    image: Optional[str] = None
    created_by: Optional[str] = None
    members: List[str] = Field(default_factory=list)
    admins: List[str] = Field(default_factory=list)
    unread_counts: Dict[str, int] = Field(default_factory=dict)
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_sender_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins

    def unread_for(self, user_id: str) -> int:
        return self.unread_counts.get(user_id, 0)


class GroupMessage(BaseModel):

    id: str
    group_id: str
    text: str
    sender_id: str
    sender_name: str = ""
    created_at: Optional[datetime] = None


class GroupCreate(BaseModel):

    name: str = Field(min_length=1, max_length=100)
    image: Optional[str] = None
    members: List[str] = Field(default_factory=list)


class GroupUpdate(BaseModel):

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    image: Optional[str] = None


class GroupMembersAdd(BaseModel):

    members: List[str] = Field(min_length=1)


class GroupMessageCreate(BaseModel):

    text: str = Field(min_length=1)
    sender_name: Optional[str] = None
