"""Embedding & indexing pipeline — chunk, embed in batches, upsert, complete.

Per document the steps are strictly sequential::

    chunk → [embed batch 1 → upsert batch 1] → [embed batch 2 → upsert batch 2] → … → completed

Each batch is upserted as soon as it is embedded.  If a later batch fails
the document is marked ``error`` and the already-upserted prefix stays in
the index; a retry overwrites the same deterministic ids, so nothing is
duplicated.

The pipeline runs for a single document id or sweeps every document in
``embedding``; one document's failure never stops the others.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from docrag.config import settings
from docrag.documents.lifecycle import DocumentLifecycle
from docrag.documents.models import DocumentRecord, ProcessingStatus, TextChunk
from docrag.errors import (
    DocRagError,
    ExtractionError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
)
from docrag.ingestion.chunker import chunk_text
from docrag.ingestion.embedder import EmbeddingClient
from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import VectorRecord, vector_id

logger = logging.getLogger(__name__)


@dataclass
class IndexedDocument:
    id: str
    chunks: int


@dataclass
class IndexingFailure:
    id: str
    reason: str


@dataclass
class IndexingReport:
    """Outcome of one pipeline run: successes and isolated failures."""

    processed: list[IndexedDocument] = field(default_factory=list)
    failures: list[IndexingFailure] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.processed and not self.failures


def build_vector_records(
    document: DocumentRecord,
    chunks: list[TextChunk],
    vectors: list[list[float]],
) -> list[VectorRecord]:
    """Zip *vectors* back onto *chunks* positionally."""
    if len(chunks) != len(vectors):
        raise ValueError(f"{len(vectors)} vectors for {len(chunks)} chunks")
    return [
        VectorRecord(
            id=vector_id(document.id, chunk.chunk_index),
            values=values,
            metadata={
                "documentId": document.id,
                "filename": document.filename,
                "fileType": document.file_type,
                "uploadDate": document.upload_date.isoformat(),
                "chunkIndex": chunk.chunk_index,
                "content": chunk.content,
            },
        )
        for chunk, values in zip(chunks, vectors)
    ]


class IndexingPipeline:
    """Turns a document's extracted text into indexed vectors.

    Parameters
    ----------
    lifecycle:
        State machine used for every status change.
    index:
        Target vector index.
    embeddings:
        Embedding client; must be the one the retriever uses.
    batch_size:
        Chunks per embedding call (and per upsert).
    max_tokens / overlap_tokens:
        Chunker budget.
    """

    def __init__(
        self,
        lifecycle: DocumentLifecycle,
        index: VectorIndexBase,
        embeddings: EmbeddingClient,
        *,
        batch_size: int = settings.embed_batch_size,
        max_tokens: int = settings.chunk_max_tokens,
        overlap_tokens: int = settings.chunk_overlap_tokens,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._lifecycle = lifecycle
        self._index = index
        self._embeddings = embeddings
        self.batch_size = batch_size
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens

    # -- public API -----------------------------------------------------------

    def run(
        self,
        document_id: str | None = None,
        *,
        batch_size: int | None = None,
        reindex: bool = False,
    ) -> IndexingReport:
        """Index one document by id, or every document currently in ``embedding``.

        Unknown ids and documents in the wrong state are reported as
        failures without touching their records.

        Raises
        ------
        ValueError
            *batch_size* is given and smaller than 1.
        """
        batch_size = self._resolve_batch_size(batch_size)
        if document_id is not None:
            targets = [document_id]
        else:
            targets = [d.id for d in self._lifecycle.store.list_by_status(ProcessingStatus.EMBEDDING)]

        report = IndexingReport()
        for target in targets:
            try:
                report.processed.append(
                    self.index_document(target, batch_size=batch_size, reindex=reindex)
                )
            except DocRagError as exc:
                report.failures.append(IndexingFailure(id=target, reason=exc.message))
        logger.info(
            "Indexing run finished: %d processed, %d failed",
            len(report.processed), len(report.failures),
        )
        return report

    def index_document(
        self,
        document_id: str,
        *,
        batch_size: int | None = None,
        reindex: bool = False,
    ) -> IndexedDocument:
        """Chunk, embed and upsert one document, then mark it ``completed``.

        On re-index, vectors left over from a previous run with more chunks
        are removed.  If the document is deleted while it is being indexed,
        the vectors written so far are removed again.

        Raises
        ------
        ValueError
            *batch_size* is given and smaller than 1.
        NotFoundError
            Unknown document id, or the document was deleted meanwhile.
        InvalidTransitionError
            Document is not in ``embedding`` and *reindex* is false, or
            another trigger moved it first (record untouched).
        DocRagError
            Any processing failure; the document is marked ``error`` first.
        """
        batch_size = self._resolve_batch_size(batch_size)
        previous_count: int | None = None
        if reindex:
            previous_count = self._lifecycle.store.require(document_id).chunk_count
            document = self._lifecycle.begin_reindex(document_id)
        else:
            document = self._lifecycle.store.require(document_id)
            if document.processing_status is not ProcessingStatus.EMBEDDING:
                raise InvalidTransitionError(
                    f"Document {document_id!r} is {document.processing_status.value!r}, "
                    "not 'embedding'"
                )

        try:
            chunk_count = self._embed_and_upsert(document, batch_size)
            if previous_count is not None and previous_count > chunk_count:
                stale = [vector_id(document_id, i) for i in range(chunk_count, previous_count)]
                self._index.delete(stale)
                logger.info("Removed %d stale vectors of %s", len(stale), document_id)
            self._lifecycle.complete(document_id, chunk_count)
        except InvalidTransitionError:
            # Someone else (e.g. the stuck sweep) changed the status meanwhile.
            raise
        except NotFoundError:
            logger.warning("Document %s deleted during indexing; removing its vectors", document_id)
            self._index.delete_document(document_id)
            raise
        except DocRagError as exc:
            self._lifecycle.fail(document_id, exc.message)
            raise
        except Exception as exc:
            logger.exception("Unexpected error while indexing %s", document_id)
            self._lifecycle.fail(document_id, str(exc) or "Embedding/indexing failed")
            raise InternalError(str(exc) or "Embedding/indexing failed") from exc

        logger.info("Indexed %s: %d chunks", document_id, chunk_count)
        return IndexedDocument(id=document_id, chunks=chunk_count)

    # -- internals ------------------------------------------------------------

    def _resolve_batch_size(self, batch_size: int | None) -> int:
        if batch_size is None:
            return self.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        return batch_size

    def _embed_and_upsert(self, document: DocumentRecord, batch_size: int) -> int:
        content = document.extracted_content or ""
        if not content.strip():
            raise ExtractionError("Document has no extractedContent")

        chunks = chunk_text(content, self.max_tokens, self.overlap_tokens)
        if not chunks:
            raise ExtractionError("No chunks produced")

        logger.info(
            "Embedding %s: %d chunks, batch_size=%d", document.id, len(chunks), batch_size
        )
        t0 = time.monotonic()
        done = 0
        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            vectors = self._embeddings.embed_texts([c.content for c in batch])
            # Stop writing as soon as the record is gone.
            self._lifecycle.store.require(document.id)
            self._index.upsert(build_vector_records(document, batch, vectors))
            done += len(batch)
            logger.info("  embedded %d / %d", done, len(chunks))

        logger.info("Embedding complete for %s in %.1fs", document.id, time.monotonic() - t0)
        return len(chunks)
