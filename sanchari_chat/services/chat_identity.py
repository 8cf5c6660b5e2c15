from typing import Tuple

from sanchari_chat.exceptions import InvalidArgument, MalformedIdentifier


SEPARATOR = "_"


def _check_user_id(user_id: str) -> None:
    if not user_id:
        raise InvalidArgument("user id required")
    if SEPARATOR in user_id:
        raise InvalidArgument(f"user id {user_id!r} must not contain {SEPARATOR!r}")


def build_chat_id(user_a: str, user_b: str) -> str:
    """Deterministic id of the one-to-one chat between two users.

    The ids are sorted before joining, so both participants derive the same
    chat id regardless of who starts the conversation.
    """
    _check_user_id(user_a)
    _check_user_id(user_b)
    if user_a == user_b:
        raise InvalidArgument("a chat needs two distinct participants")
    return SEPARATOR.join(sorted([user_a, user_b]))


def parse_chat_id(chat_id: str) -> Tuple[str, str]:
    parts = (chat_id or "").split(SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise MalformedIdentifier(f"malformed chat id {chat_id!r}")
    return parts[0], parts[1]


def other_participant(chat_id: str, self_id: str) -> str:
    first, second = parse_chat_id(chat_id)
    if self_id == first:
        return second
    if self_id == second:
        return first
    raise MalformedIdentifier(f"{self_id!r} is not a member of chat {chat_id!r}")
