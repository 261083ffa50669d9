"""Document lifecycle state machine.

States and allowed transitions::

    uploading ──► extracting ──► embedding ──► completed
        │              │             │
        └──────────────┴─────────────┴──► error

``completed`` and ``error`` are terminal for normal processing.  The only
way out of them is an explicit re-index (:meth:`DocumentLifecycle.begin_reindex`).
The stuck-document sweep only ever moves ``extracting``/``embedding`` to
``error``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from docrag.config import settings
from docrag.documents.models import DocumentRecord, ProcessingStatus
from docrag.documents.store import DocumentStoreBase
from docrag.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)

S = ProcessingStatus

ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    S.UPLOADING: frozenset({S.EXTRACTING, S.ERROR}),
    S.EXTRACTING: frozenset({S.EMBEDDING, S.ERROR}),
    S.EMBEDDING: frozenset({S.COMPLETED, S.ERROR}),
    S.COMPLETED: frozenset(),
    S.ERROR: frozenset(),
}

STUCK_MESSAGE = "Manual intervention - processing was stuck"


def new_document_id() -> str:
    """Generate a stable, prefixed document id (``doc_<uuid4>``)."""
    return f"doc_{uuid4()}"


def sources_for(target: ProcessingStatus) -> frozenset[ProcessingStatus]:
    """All states from which *target* is reachable in one normal step."""
    return frozenset(src for src, dests in ALLOWED_TRANSITIONS.items() if target in dests)


@dataclass
class StuckSweepReport:
    fixed: list[DocumentRecord] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.fixed:
            return "No stuck documents found"
        return f"Fixed {len(self.fixed)} stuck documents"


class DocumentLifecycle:
    """Applies lifecycle transitions through the store's compare-and-swap.

    Parameters
    ----------
    store:
        Document store holding the records.
    stuck_after:
        Age (since ``upload_date``) after which a document still in
        ``extracting`` / ``embedding`` is considered stuck.
    """

    def __init__(
        self,
        store: DocumentStoreBase,
        *,
        stuck_after: timedelta | None = None,
    ) -> None:
        self._store = store
        self.stuck_after = (
            stuck_after if stuck_after is not None else timedelta(seconds=settings.stuck_after_seconds)
        )

    @property
    def store(self) -> DocumentStoreBase:
        return self._store

    # -- creation -------------------------------------------------------------

    def register(
        self,
        filename: str,
        file_type: str,
        file_size: int,
        metadata: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """Create a new record in ``uploading``."""
        record = DocumentRecord(
            id=new_document_id(),
            filename=filename,
            file_type=file_type,
            file_size=file_size,
            processing_status=S.UPLOADING,
            metadata=metadata or {},
        )
        return self._store.add(record)

    # -- normal transitions ---------------------------------------------------

    def begin_extraction(self, document_id: str) -> DocumentRecord:
        return self._transition(document_id, S.EXTRACTING)

    def extraction_succeeded(self, document_id: str, text: str) -> DocumentRecord:
        return self._transition(document_id, S.EMBEDDING, extracted_content=text)

    def complete(self, document_id: str, chunk_count: int) -> DocumentRecord:
        return self._transition(document_id, S.COMPLETED, chunk_count=chunk_count)

    def fail(self, document_id: str, message: str) -> DocumentRecord:
        """Move a non-terminal document to ``error``.

        Failing a document that is already terminal is a no-op: the status
        is never silently reverted and a completed document is not demoted.
        """
        try:
            record = self._transition(document_id, S.ERROR, error_message=message)
        except InvalidTransitionError:
            current = self._store.require(document_id)
            logger.info(
                "Not failing %s: already %s", document_id, current.processing_status.value
            )
            return current
        logger.warning("Document %s failed: %s", document_id, message)
        return record

    def begin_reindex(self, document_id: str) -> DocumentRecord:
        """Explicit retry: put a terminal (or embedding) document back into ``embedding``.

        The previous ``chunk_count`` / ``error_message`` are cleared; the
        extracted content is kept.
        """
        return self._store.compare_and_update(
            document_id,
            {S.COMPLETED, S.ERROR, S.EMBEDDING},
            {"processing_status": S.EMBEDDING, "chunk_count": None, "error_message": None},
        )

    # -- maintenance ----------------------------------------------------------

    def sweep_stuck(
        self,
        *,
        now: datetime | None = None,
        older_than: timedelta | None = None,
    ) -> StuckSweepReport:
        """Force-fail documents stuck in ``extracting``/``embedding``.

        Idempotent: documents already in ``error`` are not touched, and a
        document that moved on or was deleted between listing and updating
        is skipped.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - (older_than if older_than is not None else self.stuck_after)
        report = StuckSweepReport()

        for doc in self._store.list_by_status(S.EXTRACTING, S.EMBEDDING):
            if doc.upload_date >= cutoff:
                continue
            try:
                fixed = self._store.compare_and_update(
                    doc.id,
                    {doc.processing_status},
                    {"processing_status": S.ERROR, "error_message": STUCK_MESSAGE},
                )
            except InvalidTransitionError:
                logger.info("Document %s progressed during stuck sweep; skipping", doc.id)
                continue
            except NotFoundError:
                logger.info("Document %s was deleted during stuck sweep; skipping", doc.id)
                continue
            logger.warning("Force-failed stuck document %s (%s)", doc.id, doc.filename)
            report.fixed.append(fixed)

        return report

    # -- internals ------------------------------------------------------------

    def _transition(
        self, document_id: str, target: ProcessingStatus, **fields: Any
    ) -> DocumentRecord:
        record = self._store.compare_and_update(
            document_id,
            sources_for(target),
            {"processing_status": target, **fields},
        )
        logger.debug("Document %s -> %s", document_id, target.value)
        return record
