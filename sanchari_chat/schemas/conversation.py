from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class LastMessage(BaseModel):

    text: str
    sender_id: str
    created_at: Optional[datetime] = None


class Conversation(BaseModel):

    chat_id: str
    members: List[str]
    last_message: Optional[LastMessage] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Message(BaseModel):

    id: str
    chat_id: str
    text: str
    sender_id: str
    created_at: Optional[datetime] = None
    seen_by: List[str] = Field(default_factory=list)

    def seen_by_user(self, user_id: str) -> bool:
        return user_id in self.seen_by


class ConversationCreate(BaseModel):

    peer_id: str = Field(min_length=1)


class MessageCreate(BaseModel):

    text: str = Field(min_length=1)
