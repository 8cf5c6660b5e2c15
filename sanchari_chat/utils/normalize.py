"""Document -> domain object conversion.

Every read from the store goes through one of these functions, which own the
defaulting rules for missing or legacy fields (``participants`` instead of
``members``, ``content`` instead of ``text``, millisecond timestamps, ...).
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sanchari_chat.schemas.conversation import Conversation, LastMessage, Message
from sanchari_chat.schemas.group import Group, GroupMessage
from sanchari_chat.schemas.notification import NotificationRecord


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value else []
    if not isinstance(value, (list, tuple)):
        return []
    out: List[str] = []
    for item in value:
        if isinstance(item, str) and item and item not in out:
            out.append(item)
    return out


def _first(doc: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = doc.get(key)
        if value is not None and value != "":
            return value
    return default


def normalize_conversation(doc: Mapping[str, Any]) -> Conversation:
    members = sorted(_str_list(_first(doc, "members", "participants", default=[])))
    last = doc.get("last_message")
    last_message = None
    if isinstance(last, Mapping) and (last.get("text") or last.get("sender_id")):
        last_message = LastMessage(
            text=last.get("text") or "",
            sender_id=last.get("sender_id") or last.get("senderId") or "",
            created_at=to_datetime(last.get("created_at")),
        )
    created_at = to_datetime(doc.get("created_at"))
    return Conversation(
        chat_id=str(doc["_id"]),
        members=members,
        last_message=last_message,
        created_at=created_at,
        updated_at=to_datetime(doc.get("updated_at")) or created_at,
    )


def normalize_message(doc: Mapping[str, Any]) -> Message:
    sender_id = _first(doc, "sender_id", "from", default="")
    seen_by = _str_list(doc.get("seen_by"))
    if sender_id and sender_id not in seen_by:
        seen_by.insert(0, sender_id)
    return Message(
        id=str(doc["_id"]),
        chat_id=str(_first(doc, "conversation_id", "chat_id", default="")),
        text=_first(doc, "text", "content", "message", default=""),
        sender_id=sender_id,
        created_at=to_datetime(_first(doc, "created_at", "timestamp")),
        seen_by=seen_by,
    )


def normalize_group(doc: Mapping[str, Any]) -> Group:
    members = _str_list(doc.get("members"))
    admins = [a for a in _str_list(_first(doc, "admins", "admin_ids", default=[])) if a in members]
    counts: Dict[str, int] = {}
    for user_id, value in (doc.get("unread_counts") or {}).items():
        try:
            counts[user_id] = max(int(value), 0)
        except (TypeError, ValueError):
            counts[user_id] = 0
    created_at = to_datetime(doc.get("created_at"))
    return Group(
        id=str(doc["_id"]),
        name=doc.get("name") or "Group Chat",
        image=doc.get("image") or None,
        created_by=doc.get("created_by"),
        members=members,
        admins=admins,
        unread_counts=counts,
        last_message=doc.get("last_message"),
        last_message_at=to_datetime(doc.get("last_message_at")),
        last_sender_id=doc.get("last_sender_id"),
        created_at=created_at,
        updated_at=to_datetime(doc.get("updated_at")) or created_at,
    )


def normalize_group_message(doc: Mapping[str, Any]) -> GroupMessage:
    return GroupMessage(
        id=str(doc["_id"]),
        group_id=str(doc.get("group_id") or ""),
        text=_first(doc, "text", "content", default=""),
        sender_id=doc.get("sender_id") or "",
        sender_name=doc.get("sender_name") or "",
        created_at=to_datetime(_first(doc, "created_at", "timestamp")),
    )


def normalize_notification(doc: Mapping[str, Any]) -> NotificationRecord:
    actor_id = _first(doc, "actor_id", "source_user_id")
    notification_type = str(_first(doc, "type", "notification_type", default="unknown")).lower()
    # follows have no post: the follower is the target
    target_fallback = actor_id if notification_type == "follow" else None
    return NotificationRecord(
        id=str(doc["_id"]),
        recipient_id=_first(doc, "recipient_id", "user_id", default=""),
        type=notification_type,
        actor_id=actor_id,
        actor_name=_first(doc, "actor_name", "source_username"),
        target_id=_first(doc, "target_id", "post_id", default=target_fallback),
        text=doc.get("text"),
        preview_image=_first(doc, "preview_image", "post_image"),
        read=doc.get("read") is True,
        timestamp=to_datetime(_first(doc, "created_at", "timestamp")) or datetime.fromtimestamp(0, tz=timezone.utc),
    )
