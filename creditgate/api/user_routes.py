"""
User Routes - the caller's own profile.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from creditgate.api.dependencies import get_current_user, get_profile_service
from creditgate.exceptions import ProfileNotFoundError
from creditgate.models.api import ProfileResponse
from creditgate.models.domain import AuthenticatedUser
from creditgate.services.profiles import ProfileService

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    """Email and credit balance of the authenticated user."""
    try:
        profile = await profiles.get_profile(user.id)
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found.",
        ) from exc

    return ProfileResponse(email=profile.email, credits=profile.credits)
