from datetime import datetime
from typing import List, TypedDict

from bson import ObjectId


class MessageDocument(TypedDict, total=False):
    _id: ObjectId
    conversation_id: str
    sender_id: str
    text: str
    created_at: datetime
    # grows only, via $addToSet
    seen_by: List[str]
