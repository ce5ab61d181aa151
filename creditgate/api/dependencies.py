"""
FastAPI Dependencies - Authentication, authorization and service wiring.

External clients are created once in the application lifespan and read
from ``app.state``; tests swap them out with ``app.dependency_overrides``.
"""

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from creditgate.config import Settings, get_settings
from creditgate.db.session import get_db
from creditgate.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ProfileNotFoundError,
    UpstreamServiceError,
)
from creditgate.models.api import ProfileRole
from creditgate.models.domain import AuthenticatedUser, ProfileData
from creditgate.services.credit_gate import CreditGate
from creditgate.services.profiles import ProfileService
from creditgate.services.razorpay_provider import RazorpayProvider
from creditgate.services.stability import StabilityClient
from creditgate.services.supabase_auth import SupabaseAuthClient

logger = get_logger(__name__)

# Bearer token scheme; missing headers are reported by get_current_user
bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================================
# Service wiring
# ============================================================================


def get_auth_client(request: Request) -> SupabaseAuthClient:
    """Shared Supabase Auth client."""
    client: SupabaseAuthClient = request.app.state.auth_client
    return client


def get_stability_client(request: Request) -> StabilityClient:
    """Shared Stability AI client."""
    client: StabilityClient = request.app.state.stability_client
    return client


def get_payment_provider(request: Request) -> RazorpayProvider:
    """Shared Razorpay provider."""
    provider: RazorpayProvider = request.app.state.payment_provider
    return provider


def get_credit_gate(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CreditGate:
    """Credit gate bound to the request's session."""
    return CreditGate(db, record_admin_usage=settings.record_admin_usage)


def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    """Profile service bound to the request's session."""
    return ProfileService(db)


# ============================================================================
# Auth Gate
# ============================================================================


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthenticatedUser:
    """
    Resolve ``Authorization: Bearer <token>`` to an identity.

    Usage:
        @router.get("/user/profile")
        async def profile(user: AuthenticatedUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: Missing token, or token the auth service won't resolve
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await auth_client.get_user(credentials.credentials)
    except AuthenticationError as exc:
        logger.info("auth_token_rejected", reason=exc.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Request is not authorized.",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except UpstreamServiceError as exc:
        logger.warning("auth_service_unavailable", error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Request is not authorized.",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


# ============================================================================
# Admin Gate
# ============================================================================


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileData:
    """
    Require the authenticated user's profile to have the admin role.

    Raises:
        HTTPException 404: No profile for the user
        HTTPException 403: Profile is not an admin
    """
    try:
        return await profiles.require_role(user.id, ProfileRole.ADMIN)
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found.",
        ) from exc
    except AuthorizationError as exc:
        logger.warning("admin_access_denied", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        ) from exc
