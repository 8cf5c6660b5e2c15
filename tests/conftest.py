import asyncio

import jwt
import mongomock
import pytest

from sanchari_chat.config import settings
from sanchari_chat.database.transactions import TransactionManager
from sanchari_chat.repositories.conversation_repository import ConversationRepository
from sanchari_chat.repositories.group_message_repository import GroupMessageRepository
from sanchari_chat.repositories.group_repository import GroupRepository
from sanchari_chat.repositories.message_repository import MessageRepository
from sanchari_chat.repositories.notification_repository import NotificationRepository
from sanchari_chat.services.chat_service import ChatService
from sanchari_chat.services.group_service import GroupService
from sanchari_chat.services.notification_service import NotificationService
from sanchari_chat.utils.realtime_bus import LocalBus


def _no_session(kwargs):
    session = kwargs.pop("session", None)
    assert session is None, "mongomock has no sessions; run with transactions disabled"
    return kwargs


class AsyncCursor:
    """The slice of Motor's cursor API the repositories use."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        items = list(self._cursor)
        return items[:length] if length else items

    def __aiter__(self):
        self._iter = iter(self._cursor)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class AsyncCollection:

    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **_no_session(kwargs)))

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            return attr(*args, **_no_session(kwargs))

        return call


class AsyncDatabase:

    def __init__(self, database):
        self._database = database

    def __getitem__(self, name):
        return AsyncCollection(self._database[name])

    def __getattr__(self, name):
        return AsyncCollection(self._database[name])


@pytest.fixture
def db():
    return AsyncDatabase(mongomock.MongoClient()["sanchari_test"])


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def transactions():
    return TransactionManager(None, enabled=False)


@pytest.fixture
def chat_service(db, transactions, bus):
    return ChatService(ConversationRepository(db), MessageRepository(db), transactions, bus)


@pytest.fixture
def group_service(db, transactions, bus):
    return GroupService(GroupRepository(db), GroupMessageRepository(db), transactions, bus)


@pytest.fixture
def notification_service(db, bus):
    return NotificationService(NotificationRepository(db), bus)


@pytest.fixture
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "subscription_retry_initial", 0.01)
    monkeypatch.setattr(settings, "subscription_retry_max", 0.05)


@pytest.fixture
def next_snapshot():
    """Wait for the first snapshot from an iterable subscription matching ``predicate``."""

    async def wait(subscription, predicate=lambda snapshot: True, timeout=2.0):
        async def first_match():
            async for snapshot in subscription:
                if predicate(snapshot):
                    return snapshot
            raise AssertionError("subscription closed before a matching snapshot")

        return await asyncio.wait_for(first_match(), timeout)

    return wait


@pytest.fixture
def token_for():
    def make(user_id):
        return jwt.encode({"sub": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return make
