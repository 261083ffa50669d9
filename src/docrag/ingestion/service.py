"""Upload orchestration — validate, register, extract, hand off to indexing.

Each file is handled independently: a file that fails validation or
extraction is reported in ``errors`` and never affects its siblings.
After a successful extraction the document is in ``embedding`` and an
indexing task is dispatched for it.  Dispatch is at-least-once: the
receiver (:meth:`IndexingPipeline.run`) is idempotent, and a lost dispatch
leaves the document in ``embedding`` where the next sweep picks it up.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from docrag.documents.lifecycle import DocumentLifecycle
from docrag.documents.models import DocumentRecord
from docrag.errors import DocRagError, ExtractionError, ValidationError
from docrag.ingestion.extract import BasicExtractor, ContentExtractor, detect_kind
from docrag.ingestion.validation import validate_upload

logger = logging.getLogger(__name__)

Dispatch = Callable[[str], Any]


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadError:
    filename: str
    reason: str


@dataclass
class UploadReport:
    created: list[DocumentRecord] = field(default_factory=list)
    errors: list[UploadError] = field(default_factory=list)


class IngestionService:
    """Runs uploads through validation and extraction.

    Parameters
    ----------
    lifecycle:
        State machine for the new records.
    extractor:
        Format-specific text extractor.
    dispatch:
        Called with the document id once it is ready for indexing.
        ``None`` disables automatic indexing (a later sweep will do it).
    max_upload_bytes:
        Per-file size limit; ``None`` uses the configured default.
    """

    def __init__(
        self,
        lifecycle: DocumentLifecycle,
        extractor: ContentExtractor | None = None,
        *,
        dispatch: Dispatch | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._extractor = extractor or BasicExtractor()
        self._dispatch = dispatch
        self._max_upload_bytes = max_upload_bytes

    def ingest_files(
        self,
        files: list[IncomingFile],
        *,
        dispatch: Dispatch | None = None,
    ) -> UploadReport:
        """Process every file; successes and per-file errors are both reported."""
        report = UploadReport()
        dispatch = dispatch or self._dispatch

        for incoming in files:
            try:
                record = self._ingest_one(incoming)
            except DocRagError as exc:
                report.errors.append(UploadError(filename=incoming.filename, reason=exc.message))
                continue

            report.created.append(record)
            if dispatch is not None:
                self._safe_dispatch(dispatch, record.id)

        logger.info(
            "Upload finished: %d created, %d failed", len(report.created), len(report.errors)
        )
        return report

    # -- internals ------------------------------------------------------------

    def _ingest_one(self, incoming: IncomingFile) -> DocumentRecord:
        kwargs = {"max_bytes": self._max_upload_bytes} if self._max_upload_bytes is not None else {}
        try:
            validate_upload(incoming.filename, incoming.content_type, incoming.size, **kwargs)
        except ValidationError as exc:
            logger.info("Rejected %s: %s", incoming.filename, exc.message)
            raise

        record = self._lifecycle.register(incoming.filename, incoming.content_type, incoming.size)
        self._lifecycle.begin_extraction(record.id)
        logger.info("Processing file: %s (%s)", incoming.filename, incoming.content_type)

        try:
            kind = detect_kind(incoming.content_type, incoming.filename)
            extraction = self._extractor.extract(incoming.data, kind)
            if not extraction.text.strip():
                raise ExtractionError("No text could be extracted")
            logger.info("Extracted %d characters from %s", len(extraction.text), incoming.filename)
            return self._lifecycle.extraction_succeeded(record.id, extraction.text)
        except DocRagError as exc:
            self._lifecycle.fail(record.id, exc.message)
            raise
        except Exception as exc:
            logger.exception("Extraction failed for %s", incoming.filename)
            reason = str(exc) or "Extraction error"
            self._lifecycle.fail(record.id, reason)
            raise ExtractionError(reason) from exc

    @staticmethod
    def _safe_dispatch(dispatch: Dispatch, document_id: str) -> None:
        try:
            dispatch(document_id)
        except Exception:
            # The document stays in 'embedding'; a sweep will index it later.
            logger.warning("Could not dispatch indexing for %s", document_id, exc_info=True)
