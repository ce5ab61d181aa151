"""
AI Routes - paid operations behind the credit gate.

Inputs are validated before the gate charges, so a rejected upload never
costs credits. Vendor failures after a successful charge are not refunded.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from creditgate.api.dependencies import get_credit_gate, get_current_user, get_stability_client
from creditgate.config import Settings, get_settings
from creditgate.exceptions import (
    InsufficientCreditsError,
    ProfileNotFoundError,
    UploadValidationError,
    UpstreamServiceError,
)
from creditgate.models.api import (
    ImageResponse,
    ResumeAnalysisResponse,
    ServiceName,
    TextToImageRequest,
)
from creditgate.models.domain import AuthenticatedUser, ChargeIntent, ChargeResult
from creditgate.services.credit_gate import CreditGate
from creditgate.services.resume import build_analysis, extract_resume_text, is_supported
from creditgate.services.stability import StabilityClient
from creditgate.services.uploads import prepare_image_for_upload, stored_upload

logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


async def _charge(
    gate: CreditGate, user: AuthenticatedUser, service: ServiceName, cost: int
) -> ChargeResult:
    """Run the credit gate, translating refusals into HTTP errors."""
    try:
        return await gate.authorize_and_charge(
            ChargeIntent(user_id=user.id, service_name=service.value, cost=cost)
        )
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found.",
        ) from exc
    except InsufficientCreditsError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=str(exc),
        ) from exc


def _upstream_failed(exc: UpstreamServiceError, operation: str) -> HTTPException:
    logger.error(f"{operation}_failed", error=exc.message, status=exc.status_code)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=exc.message,
    )


def _invalid_upload(exc: UploadValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=exc.message,
    )


@router.post("/text-to-image", response_model=ImageResponse)
async def text_to_image(
    body: TextToImageRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    gate: CreditGate = Depends(get_credit_gate),
    stability: StabilityClient = Depends(get_stability_client),
    settings: Settings = Depends(get_settings),
) -> ImageResponse:
    """Generate an image from a text prompt."""
    prompt = (body.prompt or "").strip()
    if not prompt:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Prompt is required.",
        )

    await _charge(gate, user, ServiceName.TEXT_TO_IMAGE, settings.text_to_image_cost)

    try:
        image_b64 = await stability.text_to_image(prompt)
    except UpstreamServiceError as exc:
        raise _upstream_failed(exc, "text_to_image") from exc

    return ImageResponse(imageUrl=PNG_DATA_URL_PREFIX + image_b64)


@router.post("/remove-background", response_model=ImageResponse)
async def remove_background(
    image: UploadFile | None = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    gate: CreditGate = Depends(get_credit_gate),
    stability: StabilityClient = Depends(get_stability_client),
    settings: Settings = Depends(get_settings),
) -> ImageResponse:
    """Remove the background from an uploaded image."""
    if image is None or not image.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No image file uploaded.",
        )

    try:
        async with stored_upload(image, settings.upload_dir, settings.max_upload_bytes) as path:
            png_bytes = await run_in_threadpool(
                prepare_image_for_upload,
                path,
                settings.max_upload_pixels,
                settings.max_upload_dimension,
            )

            await _charge(
                gate, user, ServiceName.BACKGROUND_REMOVER, settings.background_removal_cost
            )

            try:
                image_b64 = await stability.remove_background(png_bytes)
            except UpstreamServiceError as exc:
                raise _upstream_failed(exc, "remove_background") from exc
    except UploadValidationError as exc:
        raise _invalid_upload(exc) from exc

    return ImageResponse(imageUrl=PNG_DATA_URL_PREFIX + image_b64)


@router.post("/analyze-resume", response_model=ResumeAnalysisResponse)
async def analyze_resume(
    resume: UploadFile | None = File(None),
    user: AuthenticatedUser = Depends(get_current_user),
    gate: CreditGate = Depends(get_credit_gate),
    settings: Settings = Depends(get_settings),
) -> ResumeAnalysisResponse:
    """Analyze an uploaded PDF or DOCX resume."""
    if resume is None or not resume.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No resume file uploaded.",
        )

    if not is_supported(resume.content_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported file type.",
        )

    try:
        async with stored_upload(resume, settings.upload_dir, settings.max_upload_bytes) as path:
            text = await run_in_threadpool(extract_resume_text, path, resume.content_type)
            await _charge(gate, user, ServiceName.RESUME_ANALYZER, settings.resume_analysis_cost)
    except UploadValidationError as exc:
        raise _invalid_upload(exc) from exc

    return ResumeAnalysisResponse(analysis=build_analysis(text))
