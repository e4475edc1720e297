"""Data access helpers for working with posts and likes."""
from __future__ import annotations

from typing import NamedTuple

from sqlalchemy import (
    ColumnElement,
    Select,
    delete,
    exists,
    false,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.orm import Session, joinedload, selectinload

from techblog.models import Comment, Like, Post, PostTag
from techblog.schemas.post import PostListQuery, SortOrder

__all__ = ["PostRepository", "PostRow"]


class PostRow(NamedTuple):
    """A listed post with its per-read aggregates."""

    post: Post
    comment_count: int
    like_count: int
    is_liked: bool


def _comment_count_expr() -> ColumnElement[int]:
    return (
        select(func.count(Comment.id))
        .where(Comment.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
        .label("comment_count")
    )


def _like_count_expr() -> ColumnElement[int]:
    return (
        select(func.count())
        .select_from(Like)
        .where(Like.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
        .label("like_count")
    )


def _is_liked_expr(viewer_id: int | None) -> ColumnElement[bool]:
    if viewer_id is None:
        return false().label("is_liked")
    return (
        exists()
        .where(Like.post_id == Post.id, Like.user_id == viewer_id)
        .correlate(Post)
        .label("is_liked")
    )


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    @staticmethod
    def _listing_filters(query: PostListQuery) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [Post.is_published.is_(True)]
        if query.search:
            conditions.append(
                or_(
                    Post.title.icontains(query.search, autoescape=True),
                    Post.content.icontains(query.search, autoescape=True),
                )
            )
        if query.tags:
            # Overlap: the post shares at least one tag with the request.
            conditions.append(Post.tag_rows.any(PostTag.name.in_(query.tags)))
        if query.author_id is not None:
            conditions.append(Post.author_id == query.author_id)
        return conditions

    def count_published(self, query: PostListQuery) -> int:
        """Count distinct published posts matching the listing filters."""
        stmt = select(func.count()).select_from(Post).where(*self._listing_filters(query))
        return int(self.session.scalar(stmt) or 0)

    def list_published(self, query: PostListQuery, viewer_id: int | None) -> list[PostRow]:
        """Return one page of published posts with comment/like aggregates."""
        comment_count = _comment_count_expr()
        like_count = _like_count_expr()
        is_liked = _is_liked_expr(viewer_id)

        sort_columns: dict[str, ColumnElement[object]] = {
            "createdAt": Post.created_at,
            "updatedAt": Post.updated_at,
            "publishedAt": Post.published_at,
            "title": Post.title,
            "viewCount": Post.view_count,
            "likeCount": like_count,
            "commentCount": comment_count,
            "id": Post.id,
        }
        sort_column = sort_columns[query.sort_by]
        if query.sort_order is SortOrder.ASC:
            ordering = [sort_column.asc(), Post.id.asc()]
        else:
            ordering = [sort_column.desc(), Post.id.desc()]

        stmt: Select[tuple[Post, int, int, bool]] = (
            select(Post, comment_count, like_count, is_liked)
            .where(*self._listing_filters(query))
            .options(joinedload(Post.author), selectinload(Post.tag_rows))
            .order_by(*ordering)
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        return [
            PostRow(post, int(comments or 0), int(likes or 0), bool(liked))
            for post, comments, likes, liked in self.session.execute(stmt).all()
        ]

    def get(self, post_id: int) -> Post | None:
        """Return a post by identifier regardless of publication state."""
        return self.session.get(Post, post_id)

    def get_published(self, post_id: int) -> Post | None:
        """Return a published post with its author, or None."""
        stmt = (
            select(Post)
            .where(Post.id == post_id, Post.is_published.is_(True))
            .options(joinedload(Post.author), selectinload(Post.tag_rows))
        )
        return self.session.scalars(stmt).first()

    def increment_view_count(self, post_id: int) -> None:
        """Add one view to a post in a single UPDATE."""
        self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            # Keep updated_at: a view is not an edit.
            .values(view_count=Post.view_count + 1, updated_at=Post.updated_at)
        )

    def top_level_comments(self, post_id: int) -> list[Comment]:
        """Return comments without a parent, newest first."""
        stmt = (
            select(Comment)
            .where(Comment.post_id == post_id, Comment.parent_id.is_(None))
            .options(joinedload(Comment.author))
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        return list(self.session.scalars(stmt))

    def comment_count(self, post_id: int) -> int:
        stmt = select(func.count(Comment.id)).where(Comment.post_id == post_id)
        return int(self.session.scalar(stmt) or 0)

    def like_count(self, post_id: int) -> int:
        stmt = select(func.count()).select_from(Like).where(Like.post_id == post_id)
        return int(self.session.scalar(stmt) or 0)

    def has_liked(self, post_id: int, user_id: int | None) -> bool:
        """Return True when the user has a like row for the post."""
        if user_id is None:
            return False
        stmt = select(exists().where(Like.post_id == post_id, Like.user_id == user_id))
        return bool(self.session.scalar(stmt))

    def add_like(self, post_id: int, user_id: int) -> None:
        """Insert a like row; a duplicate raises IntegrityError."""
        self.session.execute(insert(Like).values(post_id=post_id, user_id=user_id))

    def remove_like(self, post_id: int, user_id: int) -> int:
        """Delete a like row and return how many rows were removed."""
        result = self.session.execute(
            delete(Like).where(Like.post_id == post_id, Like.user_id == user_id)
        )
        return int(result.rowcount or 0)

    def replace_tags(self, post: Post, tags: list[str]) -> None:
        """Swap a post's tags for `tags`, keeping their order."""
        if post.tag_rows:
            post.tag_rows.clear()
            # Old rows must be gone before re-inserting the same (post_id, name).
            self.session.flush()
        post.tag_rows = [PostTag(name=name, position=index) for index, name in enumerate(tags)]
