# src/techblog/api/v1/endpoints/comments.py
"""Comment endpoints for the TechBlog API."""

from fastapi import APIRouter, status

from techblog.schemas.comment import (
    CommentCreate,
    CommentMutationResponse,
    CommentTreeResponse,
)
from techblog.schemas.common import MessageResponse
from techblog.services import comment_service

from ..dependencies import CurrentUserDep, SessionDep, service_errors

router = APIRouter(tags=["comments"])


@router.get("/posts/{post_id}/comments", response_model=CommentTreeResponse)
async def list_comments(post_id: int, db: SessionDep) -> CommentTreeResponse:
    """Return every comment of a published post as a reply tree."""
    with service_errors(db, "List comments"):
        return CommentTreeResponse(comments=comment_service.list_comment_tree(db, post_id))


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: int,
    comment_data: CommentCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommentMutationResponse:
    """Comment on a post, or reply to one of its comments."""
    with service_errors(db, "Create comment"):
        comment = comment_service.create_comment(db, post_id, current_user, comment_data)
    return CommentMutationResponse(message="Comment created successfully", comment=comment)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MessageResponse:
    """Delete a comment owned by the current user, replies included."""
    with service_errors(db, "Delete comment"):
        comment_service.delete_comment(db, comment_id, current_user)
    return MessageResponse(message="Comment deleted successfully")
