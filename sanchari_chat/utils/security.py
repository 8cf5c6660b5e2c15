from typing import Any, Dict

import jwt

from sanchari_chat.config import settings


class InvalidToken(Exception):
    pass


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify a bearer token issued by the auth service and return its claims."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidToken("token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken("invalid token") from exc
    if not payload.get("sub"):
        raise InvalidToken("token has no subject")
    return payload


def user_id_from_token(token: str) -> str:
    return str(decode_access_token(token)["sub"])
