"""JWT helpers for the bearer-token authentication collaborator."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from techblog.core.settings import settings

__all__ = ["JWTError", "create_access_token", "decode_access_token"]


def create_access_token(user_id: int, extra_claims: dict[str, str] | None = None) -> str:
    """Create a JWT access token whose subject is the user id."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> int:
    """Return the user id carried by a token.

    Raises:
        JWTError: If the token is invalid, expired or has no usable subject.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if subject is None:
        raise JWTError("Token has no subject")
    try:
        return int(subject)
    except (TypeError, ValueError) as err:
        raise JWTError("Token subject is not a user id") from err
