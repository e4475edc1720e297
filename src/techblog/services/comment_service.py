"""Comment creation, deletion and reply-tree reconstruction."""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload

from techblog.models import Comment, User
from techblog.repositories.post_repo import PostRepository
from techblog.schemas.comment import CommentCreate, CommentNode, CommentOut
from techblog.services.errors import (
    CommentNotFoundError,
    PermissionDeniedError,
    PostNotFoundError,
)

logger = logging.getLogger(__name__)


def build_comment_tree(comments: Sequence[Comment]) -> list[CommentNode]:
    """Nest flat comments by `parent_id`.

    Roots are ordered newest first and replies oldest first. A comment whose
    parent is not in `comments` is treated as a root.
    """
    known_ids = {comment.id for comment in comments}
    children: dict[int | None, list[Comment]] = defaultdict(list)
    for comment in comments:
        parent = comment.parent_id if comment.parent_id in known_ids else None
        children[parent].append(comment)

    def build(comment: Comment) -> CommentNode:
        replies = sorted(children.get(comment.id, []), key=lambda c: (c.created_at, c.id))
        return CommentNode.model_validate(comment).model_copy(
            update={"replies": [build(reply) for reply in replies]}
        )

    roots = sorted(children.get(None, []), key=lambda c: (c.created_at, c.id), reverse=True)
    return [build(root) for root in roots]


def _comments_for_post(db: Session, post_id: int) -> list[Comment]:
    stmt = (
        select(Comment)
        .where(Comment.post_id == post_id)
        .options(joinedload(Comment.author))
    )
    return list(db.scalars(stmt))


def list_comment_tree(db: Session, post_id: int) -> list[CommentNode]:
    """Return every comment of a published post as a reply tree.

    Raises:
        PostNotFoundError: If the post does not exist or is not published.
    """
    if PostRepository(db).get_published(post_id) is None:
        raise PostNotFoundError(post_id)
    return build_comment_tree(_comments_for_post(db, post_id))


def create_comment(db: Session, post_id: int, author: User, data: CommentCreate) -> CommentOut:
    """Add a comment, or a reply when `parent_id` is given.

    Raises:
        PostNotFoundError: If the post does not exist or is not published.
        CommentNotFoundError: If the parent is missing or belongs to another post.
    """
    if PostRepository(db).get_published(post_id) is None:
        raise PostNotFoundError(post_id)

    if data.parent_id is not None:
        parent = db.get(Comment, data.parent_id)
        if parent is None or parent.post_id != post_id:
            raise CommentNotFoundError(data.parent_id, "Parent comment not found")

    comment = Comment(
        post_id=post_id,
        author_id=author.id,
        parent_id=data.parent_id,
        content=data.content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return CommentOut.model_validate(comment)


def delete_comment(db: Session, comment_id: int, actor: User) -> int:
    """Delete a comment owned by `actor` together with all of its replies.

    Returns:
        Number of comments removed.
    """
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise CommentNotFoundError(comment_id)
    if comment.author_id != actor.id:
        raise PermissionDeniedError("Not authorized to delete this comment")

    rows = db.execute(
        select(Comment.id, Comment.parent_id).where(Comment.post_id == comment.post_id)
    ).all()
    children: dict[int | None, list[int]] = defaultdict(list)
    for child_id, parent_id in rows:
        children[parent_id].append(child_id)

    doomed: list[int] = []
    pending = [comment.id]
    while pending:
        current = pending.pop()
        doomed.append(current)
        pending.extend(children.get(current, []))

    db.execute(delete(Comment).where(Comment.id.in_(doomed)))
    db.commit()
    logger.info("User %s deleted comment %s (%d removed)", actor.id, comment_id, len(doomed))
    return len(doomed)
