# src/techblog/api/v1/endpoints/posts.py
"""Post-related endpoints for the TechBlog API."""

from fastapi import APIRouter, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from techblog.core.settings import settings
from techblog.schemas.common import MessageResponse
from techblog.schemas.post import (
    LikeResponse,
    PostCreate,
    PostDetailResponse,
    PostListQuery,
    PostListResponse,
    PostMutationResponse,
    PostUpdate,
    SortField,
    SortOrder,
)
from techblog.services import post_service

from ..dependencies import CurrentUserDep, OptionalUserDep, SessionDep, service_errors

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/", response_model=PostListResponse)
async def list_posts(
    db: SessionDep,
    viewer: OptionalUserDep,
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(
        settings.posts_default_page_size,
        ge=1,
        le=settings.posts_max_page_size,
        description="Posts per page",
    ),
    sort_by: SortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    search: str | None = Query(None, description="Case-insensitive title/content match"),
    tags: str | None = Query(None, description="Comma-separated tags; any match counts"),
    author_id: int | None = Query(None, alias="authorId"),
) -> PostListResponse:
    """List published posts with filters, sorting and pagination.

    Args:
        db: Database session
        viewer: Authenticated viewer, if any, used for `isLiked`
        page: Page to return, starting at 1
        limit: Page size
        sort_by: Field to order by
        sort_order: ASC or DESC
        search: Substring to look for in title or content
        tags: Comma-separated tags, matched by overlap
        author_id: Restrict to one author

    Returns:
        The requested page and its pagination metadata
    """
    try:
        query = PostListQuery(
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            search=search,
            tags=tags,
            author_id=author_id,
        )
    except ValidationError as exc:
        raise RequestValidationError(
            exc.errors(include_url=False, include_context=False)
        ) from exc

    with service_errors(db, "List posts"):
        return post_service.list_posts(db, query, viewer)


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(post_id: int, db: SessionDep, viewer: OptionalUserDep) -> PostDetailResponse:
    """Get a published post by ID and count the view.

    Raises:
        HTTPException: 404 if the post is missing or unpublished
    """
    with service_errors(db, "Get post"):
        return PostDetailResponse(post=post_service.get_post_detail(db, post_id, viewer))


@router.post("/", response_model=PostMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    post_data: PostCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostMutationResponse:
    """Create and publish a post authored by the current user."""
    with service_errors(db, "Create post"):
        post = post_service.create_post(db, current_user, post_data)
    return PostMutationResponse(message="Post created successfully", post=post)


@router.put("/{post_id}", response_model=PostMutationResponse)
async def update_post(
    post_id: int,
    post_data: PostUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> PostMutationResponse:
    """Update the supplied fields of a post owned by the current user.

    Raises:
        HTTPException: 404 if the post is missing, 403 if the user is not its author
    """
    with service_errors(db, "Update post"):
        post = post_service.update_post(db, post_id, current_user, post_data)
    return PostMutationResponse(message="Post updated successfully", post=post)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> MessageResponse:
    """Delete a post owned by the current user.

    Raises:
        HTTPException: 404 if the post is missing, 403 if the user is not its author
    """
    with service_errors(db, "Delete post"):
        post_service.delete_post(db, post_id, current_user)
    return MessageResponse(message="Post deleted successfully")


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post(post_id: int, current_user: CurrentUserDep, db: SessionDep) -> LikeResponse:
    """Toggle the current user's like on a post."""
    with service_errors(db, "Like post"):
        liked = post_service.toggle_like(db, post_id, current_user)
    return LikeResponse(message="Post liked" if liked else "Post unliked", liked=liked)
