from typing import Awaitable, Callable, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession


T = TypeVar("T")

TransactionCallback = Callable[[Optional[AsyncIOMotorClientSession]], Awaitable[T]]


class TransactionManager:
    """Runs a unit of work inside a multi-document transaction.

    The callback receives the session to pass to every read and write. Motor's
    ``with_transaction`` re-runs the callback on transient errors (write
    conflicts between concurrent senders) and retries the commit on unknown
    commit results, so the callback must be safe to execute more than once.

    With transactions disabled the callback runs once with ``session=None``;
    only single-document atomicity holds in that mode.
    """

    def __init__(self, client: Optional[AsyncIOMotorClient], enabled: bool = True) -> None:
        if enabled and client is None:
            raise ValueError("A client is required when transactions are enabled")
        self._client = client
        self.enabled = enabled

    async def run(self, callback: TransactionCallback[T]) -> T:
        if not self.enabled:
            return await callback(None)
        async with await self._client.start_session() as session:
            return await session.with_transaction(callback)


def get_transaction_manager() -> TransactionManager:
    from sanchari_chat.config import settings
    from sanchari_chat.database.connection import get_client

    return TransactionManager(get_client(), enabled=settings.mongo_transactions)

