"""
Admin Routes - user management for admin profiles.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from creditgate.api.dependencies import get_auth_client, get_profile_service, require_admin
from creditgate.exceptions import UpstreamServiceError
from creditgate.models.api import AdminUserResponse, MessageResponse
from creditgate.models.domain import ProfileData
from creditgate.services.profiles import ProfileService
from creditgate.services.supabase_auth import SupabaseAuthClient

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[AdminUserResponse])
async def list_users(
    admin: ProfileData = Depends(require_admin),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    profiles: ProfileService = Depends(get_profile_service),
) -> list[AdminUserResponse]:
    """
    All auth users with their credits and role.

    Users without a profile row are listed with null credits and role.
    """
    try:
        users = await auth_client.list_users()
        profile_map = await profiles.list_profiles()
    except (UpstreamServiceError, SQLAlchemyError) as exc:
        logger.error("admin_list_users_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch users.",
        ) from exc

    rows = []
    for user in users:
        profile = profile_map.get(user.id)
        rows.append(
            AdminUserResponse(
                id=user.id,
                email=user.email,
                credits=profile.credits if profile else None,
                role=profile.role if profile else None,
            )
        )
    return rows


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    admin: ProfileData = Depends(require_admin),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> MessageResponse:
    """Delete a user from Supabase Auth."""
    try:
        await auth_client.delete_user(user_id)
    except UpstreamServiceError as exc:
        logger.error("admin_delete_user_failed", user_id=str(user_id), error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete user.",
        ) from exc

    logger.info("admin_deleted_user", admin_id=str(admin.user_id), user_id=str(user_id))
    return MessageResponse(message="User deleted successfully.")
