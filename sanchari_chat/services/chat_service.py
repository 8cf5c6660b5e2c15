import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from sanchari_chat.config import settings
from sanchari_chat.database.transactions import TransactionManager
from sanchari_chat.exceptions import NotAMember, NotFound, require, store_errors
from sanchari_chat.repositories.conversation_repository import ConversationRepository
from sanchari_chat.repositories.message_repository import MessageRepository
from sanchari_chat.schemas.conversation import Conversation, Message
from sanchari_chat.services.chat_identity import build_chat_id, parse_chat_id
from sanchari_chat.services.subscriptions import SnapshotCallback, Subscription, publish_change, subscribe
from sanchari_chat.utils.normalize import normalize_conversation, normalize_message
from sanchari_chat.utils.realtime_bus import conversation_channel, user_conversations_channel


logger = logging.getLogger(__name__)


class ChatService:
    """One-to-one conversations and their messages."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        transactions: TransactionManager,
        bus,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._transactions = transactions
        self._bus = bus

    async def get_or_create_chat(self, user_a: str, user_b: str) -> Conversation:
        chat_id = build_chat_id(user_a, user_b)
        members = sorted([user_a, user_b])
        with store_errors("create chat"):
            try:
                created = await self._conversation_repo.create_if_absent(chat_id, members)
            except DuplicateKeyError:
                # the other participant's upsert won the race
                created = False
            doc = await self._conversation_repo.get(chat_id)
        if doc is None:
            raise NotFound(f"chat {chat_id} not found")
        if created:
            logger.info("Created chat %s", chat_id)
            await publish_change(
                self._bus,
                [user_conversations_channel(m) for m in members],
                "chat_created",
                chat_id=chat_id,
            )
        return normalize_conversation(doc)

    async def get_chat(self, chat_id: str) -> Optional[Conversation]:
        require(chat_id=chat_id)
        with store_errors("read chat"):
            doc = await self._conversation_repo.get(chat_id)
        return normalize_conversation(doc) if doc else None

    async def get_user_chats(self, user_id: str) -> List[Conversation]:
        require(user_id=user_id)
        with store_errors("list chats"):
            docs = await self._conversation_repo.list_for_user(user_id)
        return [normalize_conversation(d) for d in docs]

    async def send_message(self, chat_id: str, sender_id: str, text: str) -> Message:
        """Store a message and advance the chat summary in one transaction.

        The chat must exist and the sender must be one of its members. The
        summary never references a message whose insert did not commit.
        """
        require(chat_id=chat_id, sender_id=sender_id, text=text)
        parse_chat_id(chat_id)

        async def _send(session):
            doc = await self._conversation_repo.get(chat_id, session=session)
            if doc is None:
                raise NotFound(f"chat {chat_id} not found")
            conversation = normalize_conversation(doc)
            if sender_id not in conversation.members:
                raise NotAMember(f"{sender_id} is not a member of chat {chat_id}")
            saved = await self._message_repo.save_message(chat_id, sender_id, text, session=session)
            await self._conversation_repo.set_last_message(
                chat_id, text, sender_id, saved["created_at"], session=session
            )
            return saved, conversation.members

        with store_errors("send message"):
            saved, members = await self._transactions.run(_send)
        message = normalize_message(saved)
        await publish_change(
            self._bus,
            [conversation_channel(chat_id)] + [user_conversations_channel(m) for m in members],
            "message",
            chat_id=chat_id,
            message_id=message.id,
        )
        return message

    async def get_messages(self, chat_id: str, limit: Optional[int] = None, before: Optional[str] = None) -> List[Message]:
        require(chat_id=chat_id)
        with store_errors("read messages"):
            docs = await self._message_repo.get_messages_by_conversation(
                chat_id, limit=limit or settings.default_page_size, before=before
            )
        return [normalize_message(d) for d in docs]

    async def mark_message_seen(self, chat_id: str, message_id: str, user_id: str) -> None:
        require(chat_id=chat_id, message_id=message_id, user_id=user_id)
        with store_errors("mark message seen"):
            matched = await self._message_repo.mark_seen(chat_id, message_id, user_id)
        if not matched:
            raise NotFound(f"message {message_id} not found in chat {chat_id}")
        await publish_change(self._bus, [conversation_channel(chat_id)], "seen", chat_id=chat_id, message_id=message_id)

    async def mark_all_messages_seen(self, chat_id: str, user_id: str) -> int:
        require(chat_id=chat_id, user_id=user_id)
        with store_errors("mark chat seen"):
            updated = await self._message_repo.mark_all_seen(chat_id, user_id)
        if updated:
            await publish_change(self._bus, [conversation_channel(chat_id)], "seen", chat_id=chat_id)
        return updated

    async def get_unread_count(self, chat_id: str, user_id: str) -> int:
        require(chat_id=chat_id, user_id=user_id)
        with store_errors("count unread messages"):
            return await self._message_repo.count_unread(chat_id, user_id)

    async def listen_to_messages(self, chat_id: str, callback: Optional[SnapshotCallback] = None) -> Subscription:
        if not chat_id:
            logger.warning("Refusing to listen to messages without a chat id")
            return Subscription.inert("messages:")

        async def load() -> List[Message]:
            docs = await self._message_repo.get_messages_by_conversation(chat_id)
            return [normalize_message(d) for d in docs]

        return await subscribe(self._bus, [conversation_channel(chat_id)], load, callback, name=f"messages:{chat_id}")

    async def listen_to_chat(self, chat_id: str, callback: Optional[SnapshotCallback] = None) -> Subscription:
        if not chat_id:
            logger.warning("Refusing to listen to a chat without an id")
            return Subscription.inert("chat:")

        async def load() -> Optional[Conversation]:
            doc = await self._conversation_repo.get(chat_id)
            return normalize_conversation(doc) if doc else None

        return await subscribe(
            self._bus, [conversation_channel(chat_id)], load, callback, name=f"chat:{chat_id}", empty=lambda: None
        )

    async def listen_to_user_conversations(
        self, user_id: str, callback: Optional[SnapshotCallback] = None
    ) -> Subscription:
        if not user_id:
            logger.warning("Refusing to listen to conversations without a user id")
            return Subscription.inert("conversations:")

        async def load() -> List[Conversation]:
            docs = await self._conversation_repo.list_for_user(user_id)
            return [normalize_conversation(d) for d in docs]

        return await subscribe(
            self._bus, [user_conversations_channel(user_id)], load, callback, name=f"conversations:{user_id}"
        )
