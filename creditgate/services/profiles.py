"""
Profile Service - reads and creates rows in the profiles table.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from creditgate.db.models import Profile, utc_now
from creditgate.exceptions import AuthorizationError, ProfileNotFoundError
from creditgate.models.api import ProfileRole
from creditgate.models.domain import ProfileData

logger = get_logger(__name__)


class ProfileService:
    """Profile lookups for the user, admin and auth routes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_profile(self, user_id: UUID) -> ProfileData:
        """
        Get profile by user id.

        Raises:
            ProfileNotFoundError: Profile doesn't exist
        """
        profile = await self._find_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return self._profile_to_domain(profile)

    async def require_role(self, user_id: UUID, role: ProfileRole) -> ProfileData:
        """
        Get profile and check it holds ``role``.

        Raises:
            ProfileNotFoundError: Profile doesn't exist
            AuthorizationError: Profile has a different role
        """
        profile = await self.get_profile(user_id)
        if profile.role != role:
            raise AuthorizationError(role.value)
        return profile

    async def ensure_profile(self, user_id: UUID, email: str, initial_credits: int) -> ProfileData:
        """
        Get existing profile or create one with starting credits.

        Safe to call when a database trigger has already created the row.
        """
        profile = await self._find_profile(user_id)
        if profile is not None:
            return self._profile_to_domain(profile)

        new_profile = Profile(
            id=user_id,
            email=email,
            credits=initial_credits,
            role=ProfileRole.USER.value,
            created_at=utc_now(),
            updated_at=utc_now(),
        )
        self.session.add(new_profile)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError:
            # Race condition - profile created by trigger or another request
            await self.session.rollback()
            profile = await self._find_profile(user_id)
            if profile is None:
                raise
            return self._profile_to_domain(profile)

        logger.info("profile_created", user_id=str(user_id), credits=initial_credits)
        return self._profile_to_domain(new_profile)

    async def list_profiles(self) -> dict[UUID, ProfileData]:
        """All profiles keyed by user id."""
        result = await self.session.execute(select(Profile))
        return {
            profile.id: self._profile_to_domain(profile) for profile in result.scalars().all()
        }

    async def _find_profile(self, user_id: UUID) -> Profile | None:
        stmt = select(Profile).where(Profile.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _profile_to_domain(profile: Profile) -> ProfileData:
        """Convert ORM profile to domain model."""
        return ProfileData(
            user_id=profile.id,
            email=profile.email,
            credits=profile.credits,
            role=ProfileRole(profile.role),
        )
