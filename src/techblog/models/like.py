"""Model capturing a user's like on a post."""

from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from techblog.db.session import Base


class Like(Base):
    """Per-user like on a post.

    The row carries no payload: presence means liked.
    """

    __tablename__ = "likes"
    __table_args__ = (Index("ix_likes_user_id", "user_id"),)

    # Composite primary key prevents duplicate likes from the same user.
    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
