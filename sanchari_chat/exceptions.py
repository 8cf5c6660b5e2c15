import logging
from contextlib import contextmanager

from pymongo.errors import PyMongoError


logger = logging.getLogger(__name__)


class MessagingError(Exception):

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(MessagingError, ValueError):
    status_code = 400


class MalformedIdentifier(InvalidArgument):
    pass


class NotFound(MessagingError):
    status_code = 404


class NotAMember(MessagingError):
    status_code = 403


class LastAdminViolation(MessagingError):
    status_code = 409


class TransportError(MessagingError):
    """The store could not be reached or rejected the operation internally."""

    status_code = 503


def require(**values: str) -> None:
    """Raise InvalidArgument naming every empty identifier or text."""
    missing = [name for name, value in values.items() if not value or not str(value).strip()]
    if missing:
        raise InvalidArgument(f"{', '.join(missing)} required")


@contextmanager
def store_errors(action: str):
    try:
        yield
    except PyMongoError as exc:
        logger.error("%s failed: %s", action, exc)
        raise TransportError(f"{action} failed") from exc
