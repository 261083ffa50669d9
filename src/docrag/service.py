"""Application facade — the operations the transports expose.

:class:`DocRagService` owns the wiring between the document store, the
lifecycle state machine, the indexing pipeline, the retriever and the
answer composer.  Transports (FastAPI, KServe) only translate requests
into these calls.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from docrag.answer.graph import AnswerComposer
from docrag.answer.state import Answer, ChatTurn
from docrag.config import Settings, settings as default_settings
from docrag.documents.lifecycle import DocumentLifecycle, StuckSweepReport
from docrag.documents.models import DocumentRecord
from docrag.documents.store import DocumentStoreBase, InMemoryDocumentStore
from docrag.ingestion.embedder import EmbeddingClient, get_embedding_function
from docrag.ingestion.extract import BasicExtractor, ContentExtractor
from docrag.ingestion.pipeline import IndexingPipeline, IndexingReport
from docrag.ingestion.service import Dispatch, IncomingFile, IngestionService, UploadReport
from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import SearchHit
from docrag.retrieval.retriever import Retriever

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    ok: bool
    vector_index: bool
    service: str = "docrag"
    time: str = ""


class DocRagService:
    """Every externally visible operation of the system."""

    def __init__(
        self,
        *,
        store: DocumentStoreBase,
        index: VectorIndexBase,
        embeddings: EmbeddingClient,
        llm: Any,
        extractor: ContentExtractor | None = None,
        config: Settings = default_settings,
    ) -> None:
        self.config = config
        self.store = store
        self.index = index
        self.lifecycle = DocumentLifecycle(
            store, stuck_after=timedelta(seconds=config.stuck_after_seconds)
        )
        self.pipeline = IndexingPipeline(
            self.lifecycle,
            index,
            embeddings,
            batch_size=config.embed_batch_size,
            max_tokens=config.chunk_max_tokens,
            overlap_tokens=config.chunk_overlap_tokens,
        )
        self.retriever = Retriever(
            index,
            embeddings,
            min_score=config.retrieval_min_score,
            char_budget=config.context_char_budget,
            min_candidates=config.retrieval_min_candidates,
            snippet_radius=config.snippet_radius,
            search_snippet_radius=config.search_snippet_radius,
            default_k=config.retrieval_default_k,
        )
        self.composer = AnswerComposer(self.retriever, llm, history_turns=config.history_turns)
        self.ingestion = IngestionService(
            self.lifecycle,
            extractor or BasicExtractor(),
            max_upload_bytes=config.max_upload_bytes,
        )

    # -- documents ------------------------------------------------------------

    def upload(self, files: list[IncomingFile], *, dispatch: Dispatch | None = None) -> UploadReport:
        return self.ingestion.ingest_files(files, dispatch=dispatch)

    def list_documents(self) -> list[DocumentRecord]:
        docs = sorted(self.store.list(), key=lambda d: d.upload_date, reverse=True)
        return [d.summary() for d in docs]

    def get_document(self, document_id: str) -> DocumentRecord:
        return self.store.require(document_id)

    def delete_document(self, document_id: str) -> None:
        """Remove the record and its vectors.

        Vectors go first: if that fails the record is still there and the
        delete can be retried.
        """
        self.store.require(document_id)
        self.index.delete_document(document_id)
        self.store.delete(document_id)
        logger.info("Deleted document %s", document_id)

    # -- indexing -------------------------------------------------------------

    def run_indexing(
        self,
        document_id: str | None = None,
        *,
        batch_size: int | None = None,
        reindex: bool = False,
    ) -> IndexingReport:
        return self.pipeline.run(document_id, batch_size=batch_size, reindex=reindex)

    def fix_stuck(self) -> StuckSweepReport:
        return self.lifecycle.sweep_stuck()

    # -- query ----------------------------------------------------------------

    def search(
        self,
        query: str,
        k: int | None = None,
        *,
        document_ids: Sequence[str] | None = None,
        file_types: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        return self.retriever.search(query, k, document_ids=document_ids, file_types=file_types)

    def chat(
        self,
        question: str,
        k: int | None = None,
        *,
        document_ids: Sequence[str] | None = None,
        file_types: Sequence[str] | None = None,
        history: Sequence[ChatTurn] = (),
    ) -> Answer:
        return self.composer.answer(
            question, k, document_ids=document_ids, file_types=file_types, history=history
        )

    def health(self) -> HealthStatus:
        index_ok = self.index.health_check()
        return HealthStatus(
            ok=index_ok,
            vector_index=index_ok,
            time=datetime.now(timezone.utc).isoformat(),
        )


def build_service(config: Settings = default_settings) -> DocRagService:
    """Production wiring: Chroma, the configured embeddings, ``ChatOpenAI``."""
    from docrag.answer.llm import get_llm
    from docrag.retrieval.chroma_store import ChromaVectorIndex

    embeddings = EmbeddingClient(
        get_embedding_function(config.embedding_backend, config.embedding_model),
        attempts=config.provider_max_retries,
        base_delay=config.provider_retry_base_delay,
    )
    index = ChromaVectorIndex(
        config.chroma_collection,
        host=config.chroma_host,
        port=config.chroma_port,
        distance=config.chroma_distance,
        attempts=config.provider_max_retries,
        base_delay=config.provider_retry_base_delay,
    )
    return DocRagService(
        store=InMemoryDocumentStore(),
        index=index,
        embeddings=embeddings,
        llm=get_llm(config.llm_temperature),
        config=config,
    )
