# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from techblog.core.roles import ROLE_ADMIN
from techblog.core.security import create_access_token
from techblog.db.session import Base, enable_sqlite_foreign_keys
from techblog.db.session import get_db as app_get_session
from techblog.db.time import utcnow
from techblog.main import app as fastapi_app
from techblog.models import Comment, Like, Post, PostTag, User

TEST_DB_URL = "sqlite://"

_USERNAME_COUNTER = count(1)
_POST_TIME_COUNTER = count(1)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI,
    session_factory: sessionmaker[Session],
) -> Iterator[None]:
    # Each request gets its own session, as in production.
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def make_user(db: Session, *, role: str = "member", **fields: Any) -> User:
    n = next(_USERNAME_COUNTER)
    user = User(
        username=fields.pop("username", f"user{n}"),
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", f"User{n}"),
        role=role,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """Create and return the primary test user."""
    return make_user(db_session, username="alice")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    """Create and return a second user."""
    return make_user(db_session, username="bob")


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    return make_user(db_session, username="root", role=ROLE_ADMIN)


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return auth_headers(other_user)


@pytest.fixture()
def post_factory(db_session: Session, test_user: User) -> Callable[..., Post]:
    """Return a callable creating posts with distinct, increasing timestamps."""

    base = utcnow() - timedelta(days=1)

    def _create(
        *,
        author: User | None = None,
        title: str = "Post",
        content: str = "Some content",
        tags: list[str] | None = None,
        published: bool = True,
        view_count: int = 0,
    ) -> Post:
        created = base + timedelta(minutes=next(_POST_TIME_COUNTER))
        post = Post(
            title=title,
            content=content,
            author_id=(author or test_user).id,
            is_published=published,
            published_at=created if published else None,
            view_count=view_count,
            created_at=created,
            updated_at=created,
        )
        post.tag_rows = [PostTag(name=name, position=i) for i, name in enumerate(tags or [])]
        db_session.add(post)
        db_session.commit()
        db_session.refresh(post)
        return post

    return _create


@pytest.fixture()
def test_post(post_factory: Callable[..., Post]) -> Post:
    """Create a baseline published post for tests."""
    return post_factory(title="Hello world", content="First post", tags=["python", "web"])


def add_like(db: Session, post: Post, user: User) -> None:
    db.add(Like(post_id=post.id, user_id=user.id))
    db.commit()


def add_comment(
    db: Session,
    post: Post,
    user: User,
    content: str = "Nice",
    parent: Comment | None = None,
) -> Comment:
    comment = Comment(
        post_id=post.id,
        author_id=user.id,
        parent_id=parent.id if parent else None,
        content=content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
