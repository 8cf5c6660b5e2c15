import logging
from typing import Dict, Iterable, List, Mapping, Optional

from pymongo.errors import PyMongoError

from sanchari_chat.config import settings
from sanchari_chat.database.transactions import TransactionManager
from sanchari_chat.exceptions import InvalidArgument, LastAdminViolation, NotAMember, NotFound, require, store_errors
from sanchari_chat.repositories.group_message_repository import GroupMessageRepository
from sanchari_chat.repositories.group_repository import GroupRepository
from sanchari_chat.schemas.group import Group, GroupMessage
from sanchari_chat.services.subscriptions import SnapshotCallback, Subscription, publish_change, subscribe
from sanchari_chat.utils.normalize import normalize_group, normalize_group_message
from sanchari_chat.utils.realtime_bus import group_channel, user_groups_channel


logger = logging.getLogger(__name__)


def apply_group_message(unread_counts: Mapping[str, int], members: Iterable[str], sender_id: str) -> Dict[str, int]:
    """Unread counters after ``sender_id`` posts one message.

    Every member other than the sender gains one (starting from zero); the
    sender has no entry.
    """
    return {
        member: max(int(unread_counts.get(member, 0) or 0), 0) + 1
        for member in members
        if member != sender_id
    }


def check_member_removal(group: Group, user_id: str) -> None:
    if group.admins == [user_id]:
        raise LastAdminViolation(f"{user_id} is the only admin of group {group.id}")


def _check_field_key(user_id: str) -> None:
    # user ids become keys of unread_counts
    if "." in user_id or user_id.startswith("$"):
        raise InvalidArgument(f"invalid user id {user_id!r}")


def _merge_members(creator_id: str, members: Iterable[str]) -> List[str]:
    merged: List[str] = []
    for member in [creator_id, *members]:
        if member and member not in merged:
            _check_field_key(member)
            merged.append(member)
    return merged


class GroupService:

    def __init__(
        self,
        group_repo: GroupRepository,
        message_repo: GroupMessageRepository,
        transactions: TransactionManager,
        bus,
    ) -> None:
        self._group_repo = group_repo
        self._message_repo = message_repo
        self._transactions = transactions
        self._bus = bus

    async def _announce(self, group: Group, event: str, extra_members: Iterable[str] = ()) -> None:
        members = list(dict.fromkeys([*group.members, *extra_members]))
        await publish_change(
            self._bus,
            [group_channel(group.id)] + [user_groups_channel(m) for m in members],
            event,
            group_id=group.id,
        )

    async def create_group(
        self,
        creator_id: str,
        name: str,
        image: Optional[str] = None,
        initial_members: Iterable[str] = (),
    ) -> str:
        require(creator_id=creator_id, name=name)
        members = _merge_members(creator_id, initial_members)
        with store_errors("create group"):
            doc = await self._group_repo.create_group(name.strip(), image, creator_id, members)
        group = normalize_group(doc)
        logger.info("Created group %s with %d members", group.id, len(members))
        await self._announce(group, "group_created")
        return group.id

    async def get_group(self, group_id: str) -> Optional[Group]:
        require(group_id=group_id)
        with store_errors("read group"):
            doc = await self._group_repo.get(group_id)
        return normalize_group(doc) if doc else None

    async def _require_group(self, group_id: str) -> Group:
        group = await self.get_group(group_id)
        if group is None:
            raise NotFound(f"group {group_id} not found")
        return group

    async def get_user_groups(self, user_id: str) -> List[Group]:
        require(user_id=user_id)
        with store_errors("list groups"):
            docs = await self._group_repo.list_for_user(user_id)
        return [normalize_group(d) for d in docs]

    async def update_group(self, group_id: str, name: Optional[str] = None, image: Optional[str] = None) -> Group:
        require(group_id=group_id)
        fields = {}
        if name is not None:
            require(name=name)
            fields["name"] = name.strip()
        if image is not None:
            fields["image"] = image or None
        with store_errors("update group"):
            doc = await self._group_repo.update_fields(group_id, fields)
        if doc is None:
            raise NotFound(f"group {group_id} not found")
        group = normalize_group(doc)
        await self._announce(group, "group_updated")
        return group

    async def add_members(self, group_id: str, new_members: Iterable[str]) -> Group:
        require(group_id=group_id)
        members = [m for m in dict.fromkeys(new_members) if m]
        if not members:
            raise InvalidArgument("members required")
        for member in members:
            _check_field_key(member)
        with store_errors("add members"):
            doc = await self._group_repo.add_members(group_id, members)
        if doc is None:
            raise NotFound(f"group {group_id} not found")
        group = normalize_group(doc)
        await self._announce(group, "members_added")
        return group

    async def remove_member(self, group_id: str, user_id: str) -> Group:
        require(group_id=group_id, user_id=user_id)

        async def _remove(session):
            doc = await self._group_repo.get(group_id, session=session)
            if doc is None:
                raise NotFound(f"group {group_id} not found")
            group = normalize_group(doc)
            if not group.is_member(user_id):
                return group, False
            check_member_removal(group, user_id)
            updated = await self._group_repo.remove_member(group_id, user_id, session=session)
            return normalize_group(updated), True

        try:
            with store_errors("remove member"):
                group, removed = await self._transactions.run(_remove)
        except LastAdminViolation:
            logger.warning("Refused to remove %s, the last admin of group %s", user_id, group_id)
            raise
        if removed:
            await self._announce(group, "member_removed", extra_members=[user_id])
        return group

    async def leave_group(self, group_id: str, user_id: str) -> Group:
        return await self.remove_member(group_id, user_id)

    async def make_admin(self, group_id: str, user_id: str) -> Group:
        require(group_id=group_id, user_id=user_id)
        group = await self._require_group(group_id)
        if not group.is_member(user_id):
            raise NotAMember(f"{user_id} is not a member of group {group_id}")
        if group.is_admin(user_id):
            return group
        with store_errors("promote admin"):
            doc = await self._group_repo.add_admin(group_id, user_id)
        group = normalize_group(doc)
        await self._announce(group, "admin_added")
        return group

    async def delete_group(self, group_id: str) -> None:
        require(group_id=group_id)

        async def _delete(session):
            doc = await self._group_repo.get(group_id, session=session)
            if doc is None:
                raise NotFound(f"group {group_id} not found")
            await self._message_repo.delete_by_group(group_id, session=session)
            await self._group_repo.delete(group_id, session=session)
            return normalize_group(doc)

        with store_errors("delete group"):
            group = await self._transactions.run(_delete)
        logger.info("Deleted group %s", group_id)
        await self._announce(group, "group_deleted")

    async def send_group_message(self, group_id: str, sender_id: str, sender_name: str, text: str) -> GroupMessage:
        """Post to a group, bumping every other member's unread counter.

        The message insert, the summary and the counters commit together.
        """
        require(group_id=group_id, sender_id=sender_id, text=text)

        async def _send(session):
            doc = await self._group_repo.get(group_id, session=session)
            if doc is None:
                raise NotFound(f"group {group_id} not found")
            group = normalize_group(doc)
            if not group.is_member(sender_id):
                raise NotAMember(f"{sender_id} is not a member of group {group_id}")
            counts = apply_group_message(group.unread_counts, group.members, sender_id)
            saved = await self._message_repo.save_message(group_id, sender_id, sender_name or "", text, session=session)
            updated = await self._group_repo.record_message(
                group_id, text, sender_id, saved["created_at"], counts, session=session
            )
            return saved, normalize_group(updated)

        with store_errors("send group message"):
            saved, group = await self._transactions.run(_send)
        message = normalize_group_message(saved)
        await self._announce(group, "message")
        return message

    async def get_group_messages(self, group_id: str, limit: Optional[int] = None) -> List[GroupMessage]:
        require(group_id=group_id)
        with store_errors("read group messages"):
            docs = await self._message_repo.get_messages_by_group(group_id, limit=limit or settings.default_page_size)
        return [normalize_group_message(d) for d in docs]

    async def mark_group_read(self, group_id: str, user_id: str) -> None:
        if not group_id or not user_id:
            logger.warning("mark_group_read called without group or user id")
            return
        try:
            _check_field_key(user_id)
            matched = await self._group_repo.reset_unread(group_id, user_id)
        except (PyMongoError, InvalidArgument) as exc:
            logger.warning("Could not mark group %s read for %s: %s", group_id, user_id, exc)
            return
        if matched:
            await publish_change(self._bus, [group_channel(group_id), user_groups_channel(user_id)], "read", group_id=group_id)

    async def listen_to_group_messages(
        self, group_id: str, callback: Optional[SnapshotCallback] = None
    ) -> Subscription:
        if not group_id:
            logger.warning("Refusing to listen to group messages without a group id")
            return Subscription.inert("group-messages:")

        async def load() -> List[GroupMessage]:
            docs = await self._message_repo.get_messages_by_group(group_id)
            return [normalize_group_message(d) for d in docs]

        return await subscribe(self._bus, [group_channel(group_id)], load, callback, name=f"group-messages:{group_id}")

    async def listen_to_user_groups(self, user_id: str, callback: Optional[SnapshotCallback] = None) -> Subscription:
        if not user_id:
            logger.warning("Refusing to listen to groups without a user id")
            return Subscription.inert("groups:")

        async def load() -> List[Group]:
            docs = await self._group_repo.list_for_user(user_id)
            return [normalize_group(d) for d in docs]

        return await subscribe(self._bus, [user_groups_channel(user_id)], load, callback, name=f"groups:{user_id}")
