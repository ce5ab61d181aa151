"""
API Models - Pydantic models for request/response validation.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ProfileRole(str, Enum):
    """Profile role enumeration."""

    USER = "user"
    ADMIN = "admin"


class ServiceName(str, Enum):
    """Paid AI operations, as recorded in the transaction log."""

    TEXT_TO_IMAGE = "Text to Image"
    BACKGROUND_REMOVER = "Background Remover"
    RESUME_ANALYZER = "Resume Analyzer"


# ============================================================================
# Auth Models
# ============================================================================


class CredentialsRequest(BaseModel):
    """POST /auth/register and /auth/login request body.

    Fields are optional so that missing values produce the 400 message
    the frontend expects instead of a schema error.
    """

    email: str | None = None
    password: str | None = None


class RegisterResponse(BaseModel):
    """POST /auth/register response."""

    message: str
    user: dict[str, Any] | None


class LoginResponse(BaseModel):
    """POST /auth/login response."""

    message: str
    session: dict[str, Any]
    user: dict[str, Any]


# ============================================================================
# User Models
# ============================================================================


class ProfileResponse(BaseModel):
    """GET /user/profile response."""

    email: str
    credits: int


# ============================================================================
# AI Operation Models
# ============================================================================


class TextToImageRequest(BaseModel):
    """POST /ai/text-to-image request body."""

    prompt: str | None = Field(None, max_length=2000)


class ImageResponse(BaseModel):
    """Image operation response carrying a data URL."""

    imageUrl: str


class ResumeAnalysisResponse(BaseModel):
    """POST /ai/analyze-resume response."""

    analysis: str


# ============================================================================
# Payment Models
# ============================================================================


class CreateOrderRequest(BaseModel):
    """POST /payment/create-order request body (amount in minor units)."""

    amount: int | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    notes: dict[str, str | int | float | bool] = Field(default_factory=dict)


class WebhookAckResponse(BaseModel):
    """Webhook acknowledgement."""

    status: str
    payment_id: str | None = None
    credits_added: int | None = None


# ============================================================================
# Admin Models
# ============================================================================


class AdminUserResponse(BaseModel):
    """Single row of GET /admin/users."""

    id: UUID
    email: str | None
    credits: int | None
    role: ProfileRole | None


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    version: str
