from datetime import datetime
from typing import List, Optional, TypedDict


class LastMessageDocument(TypedDict, total=False):
    text: str
    sender_id: str
    created_at: datetime


class ConversationDocument(TypedDict, total=False):
    # deterministic chat id, see services.chat_identity
    _id: str
    # exactly two user ids, sorted
    members: List[str]
    last_message: Optional[LastMessageDocument]
    created_at: datetime
    updated_at: datetime
