"""Document store abstraction and the default in-memory backend.

Every status change goes through :meth:`DocumentStoreBase.compare_and_update`
so that two triggers racing on the same document (an explicit
per-document call and a sweep, say) cannot silently overwrite each other.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from docrag.documents.models import DocumentRecord, ProcessingStatus
from docrag.errors import InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)


class DocumentStoreBase(ABC):
    """Backend-agnostic document store with merge updates and status CAS."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def add(self, record: DocumentRecord) -> DocumentRecord:
        """Persist a new record (overwrites an existing one with the same id)."""
        ...

    @abstractmethod
    def get(self, document_id: str) -> DocumentRecord | None:
        """Return a copy of the record, or ``None`` when it does not exist."""
        ...

    @abstractmethod
    def list(self) -> list[DocumentRecord]:
        ...

    @abstractmethod
    def update(self, document_id: str, patch: dict[str, Any]) -> DocumentRecord:
        """Merge *patch* into the record and return the new version.

        Raises :class:`NotFoundError` for unknown ids.
        """
        ...

    @abstractmethod
    def compare_and_update(
        self,
        document_id: str,
        expected: Iterable[ProcessingStatus],
        patch: dict[str, Any],
    ) -> DocumentRecord:
        """Atomically apply *patch* only if the current status is in *expected*.

        Raises :class:`InvalidTransitionError` when the status check fails
        and :class:`NotFoundError` for unknown ids.
        """
        ...

    @abstractmethod
    def delete(self, document_id: str) -> bool:
        """Remove the record; return ``False`` if it did not exist."""
        ...

    # -- helpers --------------------------------------------------------------

    def require(self, document_id: str) -> DocumentRecord:
        record = self.get(document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id!r} not found")
        return record

    def list_by_status(self, *statuses: ProcessingStatus) -> list[DocumentRecord]:
        wanted = set(statuses)
        return [doc for doc in self.list() if doc.processing_status in wanted]


def _merge(record: DocumentRecord, patch: dict[str, Any]) -> DocumentRecord:
    # Re-validate so the status/field invariants hold after every write.
    return DocumentRecord.model_validate({**record.model_dump(), **patch})


class InMemoryDocumentStore(DocumentStoreBase):
    """Process-local store; read-modify-writes are serialised per document id."""

    def __init__(self) -> None:
        self._records: dict[str, DocumentRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = self._locks[document_id] = threading.Lock()
            return lock

    # -- DocumentStoreBase overrides ------------------------------------------

    def add(self, record: DocumentRecord) -> DocumentRecord:
        with self._lock_for(record.id):
            self._records[record.id] = record.model_copy(deep=True)
        logger.debug("Stored document %s (%s)", record.id, record.filename)
        return record.model_copy(deep=True)

    def get(self, document_id: str) -> DocumentRecord | None:
        record = self._records.get(document_id)
        return record.model_copy(deep=True) if record is not None else None

    def list(self) -> list[DocumentRecord]:
        return [r.model_copy(deep=True) for r in list(self._records.values())]

    def update(self, document_id: str, patch: dict[str, Any]) -> DocumentRecord:
        with self._lock_for(document_id):
            current = self._records.get(document_id)
            if current is None:
                raise NotFoundError(f"Document {document_id!r} not found")
            updated = _merge(current, patch)
            self._records[document_id] = updated
            return updated.model_copy(deep=True)

    def compare_and_update(
        self,
        document_id: str,
        expected: Iterable[ProcessingStatus],
        patch: dict[str, Any],
    ) -> DocumentRecord:
        expected = frozenset(expected)
        with self._lock_for(document_id):
            current = self._records.get(document_id)
            if current is None:
                raise NotFoundError(f"Document {document_id!r} not found")
            if current.processing_status not in expected:
                raise InvalidTransitionError(
                    f"Document {document_id!r} is {current.processing_status.value!r}; "
                    f"expected one of {sorted(s.value for s in expected)}"
                )
            updated = _merge(current, patch)
            self._records[document_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, document_id: str) -> bool:
        with self._lock_for(document_id):
            existed = self._records.pop(document_id, None) is not None
        with self._registry_lock:
            self._locks.pop(document_id, None)
        return existed
