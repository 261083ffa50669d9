"""Content extraction adapters.

Format-specific parsing sits outside the core: anything implementing
:class:`ContentExtractor` can be plugged into the ingestion service.
:class:`BasicExtractor` covers plain text, CSV, SVG text, PDFs (via
``pypdf``) and Word documents (via ``python-docx``); images need a
dedicated extractor.
"""

from __future__ import annotations

import csv
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Protocol, runtime_checkable

from docrag.errors import ExtractionError
from docrag.ingestion.validation import file_extension

logger = logging.getLogger(__name__)

ExtractKind = Literal["pdf", "image", "svg", "csv", "docx", "txt"]

_DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


@dataclass
class Extraction:
    text: str
    kind: ExtractKind
    page_count: int | None = None
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class ContentExtractor(Protocol):
    """Turns raw file bytes into plain text."""

    def extract(self, data: bytes, kind: ExtractKind) -> Extraction:
        """Extract text from *data*.

        Raises:
            ExtractionError: The file could not be parsed.
        """
        ...


def detect_kind(content_type: str, filename: str) -> ExtractKind:
    """MIME type first, extension as fallback; unknown types are treated as text."""
    ext = file_extension(filename)
    if content_type == "application/pdf" or ext == "pdf":
        return "pdf"
    if content_type.startswith("image/") and content_type != "image/svg+xml" and ext != "svg":
        return "image"
    if content_type == "image/svg+xml" or ext == "svg":
        return "svg"
    if content_type == "text/csv" or ext == "csv":
        return "csv"
    if content_type == _DOCX_MIME or ext == "docx":
        return "docx"
    return "txt"


class BasicExtractor:
    """Extractor for the text-like formats plus PDF and DOCX."""

    def extract(self, data: bytes, kind: ExtractKind) -> Extraction:
        if kind == "pdf":
            return self._extract_pdf(data)
        if kind == "svg":
            text = _WS_RE.sub(" ", _TAG_RE.sub(" ", _decode(data))).strip()
            return Extraction(text=text, kind=kind)
        if kind == "csv":
            rows = [row for row in csv.reader(io.StringIO(_decode(data))) if any(row)]
            return Extraction(text="\n".join(", ".join(row) for row in rows).strip(), kind=kind)
        if kind == "txt":
            return Extraction(text=_decode(data).strip(), kind=kind)
        if kind == "docx":
            return self._extract_docx(data)
        raise ExtractionError(f"No extractor available for {kind!r} files")

    @staticmethod
    def _extract_pdf(data: bytes) -> Extraction:
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError

        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
        except PdfReadError as exc:
            raise ExtractionError(f"Could not read PDF: {exc}") from exc
        logger.info("Extracted %d PDF pages", len(pages))
        return Extraction(text="\n\n".join(pages).strip(), kind="pdf", page_count=len(pages))

    @staticmethod
    def _extract_docx(data: bytes) -> Extraction:
        from docx import Document
        from docx.opc.exceptions import PackageNotFoundError

        try:
            doc = Document(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as exc:
            raise ExtractionError(f"Could not read DOCX: {exc}") from exc
        paragraphs = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        logger.info("Extracted %d DOCX paragraphs", len(paragraphs))
        return Extraction(text="\n\n".join(paragraphs), kind="docx")


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")
