"""CRUD-style helpers for managing users."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from techblog.core.roles import ROLE_MEMBER
from techblog.models import Post, User
from techblog.schemas.user import UserProfile
from techblog.services.errors import UserNotFoundError

__all__ = [
    "get_user",
    "get_user_by_username",
    "get_profile",
    "create_user",
]


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.scalars(select(User).where(User.username == username)).first()


def get_profile(db: Session, user_id: int) -> UserProfile:
    """Return a user's public profile with their published post count."""
    user = get_user(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    post_count = db.scalar(
        select(func.count())
        .select_from(Post)
        .where(Post.author_id == user.id, Post.is_published.is_(True))
    )
    return UserProfile.model_validate(user).model_copy(update={"post_count": int(post_count or 0)})


def create_user(
    db: Session,
    username: str,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    avatar: str | None = None,
    role: str = ROLE_MEMBER,
) -> User:
    """Persist a new user account."""
    db_user = User(
        username=username,
        first_name=first_name,
        last_name=last_name,
        avatar=avatar,
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
