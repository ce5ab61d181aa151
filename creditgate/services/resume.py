"""
Resume text extraction and analysis.
"""

from pathlib import Path
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError
from structlog import get_logger

from creditgate.exceptions import UploadValidationError

logger = get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_MEDIA_TYPES = frozenset({PDF_MEDIA_TYPE, DOCX_MEDIA_TYPE})

PREVIEW_LENGTH = 150


def is_supported(media_type: str | None) -> bool:
    return media_type in SUPPORTED_MEDIA_TYPES


def extract_resume_text(path: Path, media_type: str) -> str:
    """
    Extract plain text from a PDF or DOCX resume.

    Raises:
        UploadValidationError: Unsupported type or unreadable document
    """
    if media_type == PDF_MEDIA_TYPE:
        return _extract_pdf(path)
    if media_type == DOCX_MEDIA_TYPE:
        return _extract_docx(path)
    raise UploadValidationError("Unsupported file type.")


def _extract_pdf(path: Path) -> str:
    try:
        reader = PdfReader(path)
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, IndexError, OSError) as exc:
        logger.info("resume_pdf_unreadable", error=str(exc))
        raise UploadValidationError("Could not read PDF file.") from exc
    return "\n".join(pages)


def _extract_docx(path: Path) -> str:
    try:
        document = Document(str(path))
    except (PackageNotFoundError, BadZipFile, ValueError, KeyError, OSError) as exc:
        logger.info("resume_docx_unreadable", error=str(exc))
        raise UploadValidationError("Could not read DOCX file.") from exc
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def build_analysis(text: str) -> str:
    """Render the analysis for extracted resume text."""
    return (
        "**Resume Analysis Complete:**\n\n"
        "- The AI has reviewed your document.\n"
        f'- The extracted text begins with: "{text[:PREVIEW_LENGTH]}..."\n\n'
        "**Key Suggestion:** Ensure all your achievements are quantified with "
        "numbers to show measurable impact."
    )
