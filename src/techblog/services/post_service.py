"""Service-level helpers for reading and mutating posts."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from techblog.db.time import utcnow
from techblog.models import Post, User
from techblog.repositories.post_repo import PostRepository
from techblog.schemas.comment import CommentOut
from techblog.schemas.post import (
    Pagination,
    PostCreate,
    PostDetail,
    PostListQuery,
    PostListResponse,
    PostOut,
    PostSummary,
    PostUpdate,
)
from techblog.schemas.user import AuthorDetail
from techblog.services.errors import PermissionDeniedError, PostNotFoundError

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an update; a null for them means "unchanged".
_REQUIRED_FIELDS = frozenset({"title", "content"})

__all__ = [
    "list_posts",
    "get_post_detail",
    "create_post",
    "update_post",
    "delete_post",
    "toggle_like",
]


def list_posts(db: Session, query: PostListQuery, viewer: User | None = None) -> PostListResponse:
    """Return one page of published posts and its pagination metadata.

    Args:
        db: Database session.
        query: Filters, sort and page requested by the caller.
        viewer: Authenticated viewer, used only to compute `is_liked`.

    Returns:
        Listing response with derived comment/like counts per post.
    """
    repo = PostRepository(db)
    total_items = repo.count_published(query)
    rows = repo.list_published(query, viewer.id if viewer else None)
    posts = [
        PostSummary.model_validate(row.post).model_copy(
            update={
                "comment_count": row.comment_count,
                "like_count": row.like_count,
                "is_liked": row.is_liked,
            }
        )
        for row in rows
    ]
    return PostListResponse(
        posts=posts,
        pagination=Pagination.build(page=query.page, limit=query.limit, total_items=total_items),
    )


def get_post_detail(db: Session, post_id: int, viewer: User | None = None) -> PostDetail:
    """Return a published post with author, top-level comments and like state.

    Each call counts as one view. The counter update is best-effort: if it
    fails the read still succeeds. The returned `view_count` is the value
    after the increment.

    Raises:
        PostNotFoundError: If the post does not exist or is not published.
    """
    repo = PostRepository(db)
    post = repo.get_published(post_id)
    if post is None:
        raise PostNotFoundError(post_id)

    try:
        repo.increment_view_count(post.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not increment view count for post %s", post_id, exc_info=True)
    db.refresh(post, attribute_names=["view_count"])

    viewer_id = viewer.id if viewer else None
    base = PostOut.model_validate(post).model_dump(exclude={"author"})
    return PostDetail.model_validate(
        {
            **base,
            "author": AuthorDetail.model_validate(post.author),
            "comments": [CommentOut.model_validate(c) for c in repo.top_level_comments(post.id)],
            "comment_count": repo.comment_count(post.id),
            "like_count": repo.like_count(post.id),
            "is_liked": repo.has_liked(post.id, viewer_id),
        }
    )


def create_post(db: Session, author: User, data: PostCreate) -> PostOut:
    """Publish a new post authored by `author`."""
    repo = PostRepository(db)
    post = Post(
        title=data.title,
        content=data.content,
        excerpt=data.excerpt,
        image_url=data.image_url,
        author_id=author.id,
        is_published=True,
        published_at=utcnow(),
    )
    db.add(post)
    repo.replace_tags(post, data.tags or [])
    db.commit()
    db.refresh(post)
    logger.info("User %s created post %s", author.id, post.id)
    return PostOut.model_validate(post)


def _get_owned_post(repo: PostRepository, post_id: int, actor: User, action: str) -> Post:
    # Existence first so a missing post never reports a permission problem.
    post = repo.get(post_id)
    if post is None:
        raise PostNotFoundError(post_id)
    if post.author_id != actor.id:
        raise PermissionDeniedError(f"Not authorized to {action} this post")
    return post


def update_post(db: Session, post_id: int, actor: User, data: PostUpdate) -> PostOut:
    """Apply a partial update to a post owned by `actor`.

    Only fields present in the request change. An explicit null clears
    `excerpt`, `image_url` or `tags` and is ignored for `title`/`content`.

    Raises:
        PostNotFoundError: If the post does not exist.
        PermissionDeniedError: If `actor` is not the author.
    """
    repo = PostRepository(db)
    post = _get_owned_post(repo, post_id, actor, "update")

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field == "tags":
            repo.replace_tags(post, value or [])
        elif value is None and field in _REQUIRED_FIELDS:
            continue
        else:
            setattr(post, field, value)

    db.commit()
    db.refresh(post)
    return PostOut.model_validate(post)


def delete_post(db: Session, post_id: int, actor: User) -> None:
    """Hard-delete a post owned by `actor`; tags, comments and likes go with it."""
    repo = PostRepository(db)
    post = _get_owned_post(repo, post_id, actor, "delete")
    db.delete(post)
    db.commit()
    logger.info("User %s deleted post %s", actor.id, post_id)


def toggle_like(db: Session, post_id: int, actor: User) -> bool:
    """Flip the actor's like on a published post and return the new state.

    The (post_id, user_id) primary key makes the flip safe under concurrent
    calls: a racing request that finds the row already gone (delete) or
    already present (insert) ends in the state it intended, so it is
    reported as success rather than an error.

    Raises:
        PostNotFoundError: If the post does not exist or is not published.
    """
    repo = PostRepository(db)
    post = repo.get_published(post_id)
    if post is None:
        raise PostNotFoundError(post_id)

    if repo.has_liked(post.id, actor.id):
        removed = repo.remove_like(post.id, actor.id)
        db.commit()
        if not removed:
            logger.debug("Like on post %s by user %s was already removed", post.id, actor.id)
        return False

    try:
        repo.add_like(post.id, actor.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug("Like on post %s by user %s already exists", post_id, actor.id)
    return True
