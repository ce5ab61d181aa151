"""
Upload handling - temp storage and image preparation.

Every stored upload is removed when its context exits, whatever the outcome
of the request.
"""

import io
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from structlog import get_logger

from creditgate.exceptions import UploadValidationError

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
PNG_MODES = frozenset({"1", "L", "LA", "P", "RGB", "RGBA", "I"})


@asynccontextmanager
async def stored_upload(
    upload: UploadFile, directory: str, max_bytes: int | None = None
) -> AsyncIterator[Path]:
    """
    Spool an upload to a temp file under ``directory``.

    Yields the file path; the file is deleted on exit.

    Raises:
        UploadValidationError: Upload is larger than ``max_bytes``
    """
    Path(directory).mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix
    fd, name = tempfile.mkstemp(prefix="upload_", suffix=suffix, dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            written = 0
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    logger.info("upload_too_large", limit=max_bytes)
                    raise UploadValidationError("Uploaded file is too large.")
                handle.write(chunk)
        logger.debug("upload_stored", path=str(path), content_type=upload.content_type)
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("upload_removed", path=str(path))


def prepare_image_for_upload(path: Path, max_pixels: int, max_dimension: int) -> bytes:
    """
    Decode an uploaded image and encode it as PNG for forwarding.

    Images with more than ``max_pixels`` pixels are shrunk to fit a
    ``max_dimension`` square, aspect ratio kept. Smaller images are never
    enlarged.

    Raises:
        UploadValidationError: File is not a decodable image
    """
    try:
        with Image.open(path) as image:
            image.load()
            width, height = image.size

            if width * height > max_pixels:
                image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
                logger.info(
                    "image_downscaled",
                    original=f"{width}x{height}",
                    resized=f"{image.width}x{image.height}",
                )

            if image.mode not in PNG_MODES:
                image = image.convert("RGBA")

            output = io.BytesIO()
            image.save(output, format="PNG", optimize=True)
            return output.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        logger.info("image_decode_failed", path=str(path), error=str(exc))
        raise UploadValidationError("Uploaded file is not a valid image.") from exc
