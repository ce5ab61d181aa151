"""
Auth Routes - registration and login, delegated to Supabase Auth.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from creditgate.api.dependencies import get_auth_client, get_profile_service
from creditgate.config import Settings, get_settings
from creditgate.exceptions import AuthProviderError, UpstreamServiceError
from creditgate.models.api import CredentialsRequest, LoginResponse, RegisterResponse
from creditgate.observability.metrics import metrics
from creditgate.services.profiles import ProfileService
from creditgate.services.supabase_auth import SupabaseAuthClient

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _require_credentials(body: CredentialsRequest) -> tuple[str, str]:
    if not body.email or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please provide an email and password.",
        )
    return body.email, body.password


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: CredentialsRequest,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    profiles: ProfileService = Depends(get_profile_service),
    settings: Settings = Depends(get_settings),
) -> RegisterResponse:
    """
    Register an email/password user.

    Supabase sends the confirmation email. A profile with the signup credit
    grant is created for the new user id.
    """
    email, password = _require_credentials(body)

    try:
        result = await auth_client.sign_up(email, password)
    except AuthProviderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except UpstreamServiceError as exc:
        logger.error("register_failed", error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration.",
        ) from exc

    user_id = (result.user or {}).get("id")
    if user_id:
        try:
            await profiles.ensure_profile(UUID(str(user_id)), email, settings.signup_credits)
        except SQLAlchemyError as exc:
            # Auth user exists; profile can still be created by the database trigger
            logger.error("signup_profile_failed", user_id=str(user_id), error=str(exc))
            metrics.record_error(type(exc).__name__, "signup_profile")

    logger.info("user_registered", user_id=user_id)
    return RegisterResponse(
        message="Registration successful! Please check your email to confirm your account.",
        user=result.user,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: CredentialsRequest,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> LoginResponse:
    """Exchange email/password for a Supabase session."""
    email, password = _require_credentials(body)

    try:
        result = await auth_client.sign_in_with_password(email, password)
    except AuthProviderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except UpstreamServiceError as exc:
        logger.error("login_failed", error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during login.",
        ) from exc

    return LoginResponse(message="Login successful!", session=result.session, user=result.user)
