# src/techblog/api/v1/endpoints/users.py
"""User profile endpoints."""

from fastapi import APIRouter

from techblog.schemas.user import UserProfile
from techblog.services import user_service

from ..dependencies import CurrentUserDep, SessionDep, service_errors

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfile)
async def read_me(current_user: CurrentUserDep, db: SessionDep) -> UserProfile:
    """Return the authenticated user's profile."""
    with service_errors(db, "Read profile"):
        return user_service.get_profile(db, current_user.id)


@router.get("/{user_id}", response_model=UserProfile)
async def read_user(user_id: int, db: SessionDep) -> UserProfile:
    """Return a user's public profile."""
    with service_errors(db, "Read user"):
        return user_service.get_profile(db, user_id)
