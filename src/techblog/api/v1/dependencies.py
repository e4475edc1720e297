"""Shared API dependencies for authentication and error translation."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from techblog.core.security import JWTError, decode_access_token
from techblog.db.session import get_db
from techblog.models import User
from techblog.services.errors import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

# Missing credentials are handled here so both required and optional auth can share it.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _resolve_user(credentials: HTTPAuthorizationCredentials, db: Session) -> User | None:
    try:
        user_id = decode_access_token(credentials.credentials)
    except JWTError:
        return None
    return db.get(User, user_id)


def get_current_user(credentials: CredentialsDep, db: SessionDep) -> User:
    """Get the current authenticated user from a JWT bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names no user.
    """
    if credentials is None:
        raise _unauthenticated("User not authenticated")
    user = _resolve_user(credentials, db)
    if user is None:
        raise _unauthenticated("Could not validate credentials")
    return user


def get_optional_user(credentials: CredentialsDep, db: SessionDep) -> User | None:
    """Return the authenticated user, or None for anonymous viewers.

    An invalid token is treated the same as no token.
    """
    if credentials is None:
        return None
    return _resolve_user(credentials, db)


# Type aliases for current user dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


@contextmanager
def service_errors(db: Session, operation: str) -> Iterator[None]:
    """Map service exceptions raised inside the block to HTTP errors.

    Storage faults roll the session back and become a generic 500 so no
    partial result ever leaves the endpoint.
    """
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed", operation)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc
