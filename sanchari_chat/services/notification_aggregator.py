"""Collapse raw notification events into display groups.

Everything here is pure: records in, aggregated notifications out.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from sanchari_chat.schemas.notification import AggregatedNotification, NotificationRecord


# messages surface through chat and group unread counters instead
EXCLUDED_TYPES = frozenset({"message", "chat", "group_message"})

COMMENT_PREVIEW_LENGTH = 50


def _comment_preview(text: Optional[str]) -> str:
    if not text:
        return "Nice!"
    if len(text) > COMMENT_PREVIEW_LENGTH:
        return text[:COMMENT_PREVIEW_LENGTH] + "..."
    return text


def render_notification_text(
    notification_type: str,
    count: int = 1,
    actor_name: Optional[str] = None,
    text: Optional[str] = None,
) -> str:
    name = actor_name or "Someone"
    others = count - 1
    if notification_type == "like":
        if others > 0:
            return f"{name} and {others} others liked your post"
        return f"{name} liked your post"
    if notification_type == "comment":
        if others > 0:
            return f"{name} and {others} others commented on your post"
        return f'{name} commented: "{_comment_preview(text)}"'
    if notification_type == "follow":
        return f"{name} started following you"
    return "New notification"


def aggregate_notifications(records: Iterable[NotificationRecord]) -> List[AggregatedNotification]:
    """Group records sharing ``(type, target_id)``.

    The newest record of a group supplies its id, actor name, text and
    preview; ``read`` holds only when every record in the group is read.
    """
    ordered = sorted(
        (r for r in records if r.type not in EXCLUDED_TYPES),
        key=lambda r: r.timestamp,
        reverse=True,
    )
    groups: Dict[Tuple[str, str], AggregatedNotification] = {}
    for record in ordered:
        key = (record.type, record.target_id) if record.target_id else ("", record.id)
        group = groups.get(key)
        if group is None:
            groups[key] = AggregatedNotification(
                id=record.id,
                type=record.type,
                target_id=record.target_id,
                count=1,
                actors=[record.actor_id] if record.actor_id else [],
                doc_ids=[record.id],
                read=record.read,
                timestamp=record.timestamp,
                actor_name=record.actor_name,
                text=record.text,
                preview_image=record.preview_image,
            )
            continue
        group.count += 1
        group.doc_ids.append(record.id)
        group.read = group.read and record.read
        if record.actor_id and record.actor_id not in group.actors:
            group.actors.append(record.actor_id)
        if not group.preview_image and record.preview_image:
            group.preview_image = record.preview_image

    result = list(groups.values())
    for group in result:
        group.message = render_notification_text(group.type, group.count, group.actor_name, group.text)
    result.sort(key=lambda g: g.timestamp, reverse=True)
    return result
