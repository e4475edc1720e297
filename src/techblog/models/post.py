"""SQLAlchemy models for posts and their tags."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from techblog.db.session import Base
from techblog.db.time import utcnow

if TYPE_CHECKING:
    from .comment import Comment
    from .like import Like
    from .user import User


class PostTag(Base):
    """One tag attached to a post.

    The (post_id, name) primary key makes a post's tags a set; `position`
    keeps the order the author gave them.
    """

    __tablename__ = "post_tag"
    __table_args__ = (Index("ix_post_tag_name", "name"),)

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Post(Base):
    """Blog article written by a user.

    Comment and like counts are never stored here; they are computed per
    read from the `comments` and `likes` tables.
    """

    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_author_id", "author_id"),
        Index("ix_posts_published_created", "is_published", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    excerpt: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Display metric only; concurrent increments may be lost.
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    author: Mapped[User] = relationship("User", back_populates="posts")

    tag_rows: Mapped[list[PostTag]] = relationship(
        PostTag,
        order_by=PostTag.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tags: AssociationProxy[list[str]] = association_proxy(
        "tag_rows",
        "name",
        creator=lambda name: PostTag(name=name),
    )

    comments: Mapped[list[Comment]] = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    likes: Mapped[list[Like]] = relationship(
        "Like",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
