"""
Stability AI client - text-to-image and background removal.

Calls are forwarded once with no retries; any non-2xx response becomes an
UpstreamServiceError carrying the vendor's response text.
"""

import base64
import time

import httpx
from structlog import get_logger

from creditgate.exceptions import UpstreamServiceError
from creditgate.observability.metrics import metrics
from creditgate.observability.tracing import get_tracer

logger = get_logger(__name__)
tracer = get_tracer(__name__)

SERVICE = "stability"


class StabilityClient:
    """Stability AI REST client."""

    TEXT_TO_IMAGE_PATH = "/v1/generation/{engine_id}/text-to-image"
    REMOVE_BACKGROUND_PATH = "/v2beta/stable-image/edit/remove-background"

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.stability.ai",
        engine_id: str = "stable-diffusion-xl-1024-v1-0",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.engine_id = engine_id
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def text_to_image(self, prompt: str) -> str:
        """
        Generate one 1024x1024 image for ``prompt``.

        Returns:
            Base64-encoded PNG (no data URL prefix)

        Raises:
            UpstreamServiceError: Request failed or returned non-2xx
        """
        url = self.api_base + self.TEXT_TO_IMAGE_PATH.format(engine_id=self.engine_id)
        payload = {
            "text_prompts": [{"text": prompt}],
            "cfg_scale": 7,
            "height": 1024,
            "width": 1024,
            "steps": 30,
            "samples": 1,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

        with tracer.start_as_current_span("stability.text_to_image") as span:
            span.set_attribute("engine_id", self.engine_id)
            response = await self._send("text_to_image", "POST", url, headers=headers, json=payload)

        try:
            return str(response.json()["artifacts"][0]["base64"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("stability_unexpected_response", operation="text_to_image")
            raise UpstreamServiceError(
                SERVICE, "Unexpected response from Stability AI", response.status_code
            ) from exc

    async def remove_background(self, image_bytes: bytes) -> str:
        """
        Remove the background from a PNG image.

        Returns:
            Base64-encoded result image (no data URL prefix)

        Raises:
            UpstreamServiceError: Request failed or returned non-2xx
        """
        url = self.api_base + self.REMOVE_BACKGROUND_PATH
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "image/*",
        }
        files = {"image": ("image.png", image_bytes, "image/png")}

        with tracer.start_as_current_span("stability.remove_background") as span:
            span.set_attribute("bytes", len(image_bytes))
            response = await self._send("remove_background", "POST", url, headers=headers, files=files)

        return base64.b64encode(response.content).decode("ascii")

    async def _send(self, operation: str, method: str, url: str, **kwargs: object) -> httpx.Response:
        """Send one request, recording metrics and mapping failures."""
        started = time.perf_counter()
        try:
            response = await self.http_client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as exc:
            metrics.record_upstream_call(SERVICE, False, time.perf_counter() - started)
            logger.error("stability_request_error", operation=operation, error=str(exc))
            raise UpstreamServiceError(SERVICE, f"Stability AI request failed: {exc}") from exc

        metrics.record_upstream_call(SERVICE, response.is_success, time.perf_counter() - started)

        if not response.is_success:
            logger.warning(
                "stability_non_success",
                operation=operation,
                status=response.status_code,
            )
            raise UpstreamServiceError(
                SERVICE,
                f"Non-200 response from Stability AI: {response.text}",
                response.status_code,
            )

        return response

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
