"""SQLAlchemy model for post comments."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from techblog.db.session import Base
from techblog.db.time import utcnow

if TYPE_CHECKING:
    from .post import Post
    from .user import User


class Comment(Base):
    """Comment on a post, optionally replying to another comment.

    Replies reference their parent by id only; the tree is rebuilt at read
    time by grouping on `parent_id`.
    """

    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_post_parent", "post_id", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Top-level comments have parent_id = NULL.
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    post: Mapped[Post] = relationship("Post", back_populates="comments")
    author: Mapped[User] = relationship("User")
