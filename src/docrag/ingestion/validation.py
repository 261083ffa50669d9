"""Upload validation — allowed file types and size limit."""

from __future__ import annotations

from docrag.config import settings
from docrag.errors import ValidationError

ALLOWED_EXTENSIONS = frozenset({"pdf", "png", "jpg", "jpeg", "svg", "txt", "csv", "docx"})

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/svg+xml",
        "text/plain",
        "text/csv",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot, or ``""``."""
    _, dot, ext = filename.lower().rpartition(".")
    return ext if dot else ""


def is_allowed_type(content_type: str, filename: str) -> bool:
    """MIME type wins; the extension is the fallback for missing/odd MIME types."""
    return content_type in ALLOWED_MIME_TYPES or file_extension(filename) in ALLOWED_EXTENSIONS


def validate_upload(
    filename: str,
    content_type: str,
    size: int,
    *,
    max_bytes: int = settings.max_upload_bytes,
) -> None:
    """Raise :class:`ValidationError` if the file may not be processed."""
    if not is_allowed_type(content_type, filename):
        raise ValidationError(f"Unsupported type: {content_type or 'unknown'}")
    if size > max_bytes:
        raise ValidationError(f"File too large (> {max_bytes // (1024 * 1024)}MB)")
