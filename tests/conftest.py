"""Shared pytest configuration, in-memory fakes and fixtures."""

from __future__ import annotations

import math
import re
import zlib
from collections.abc import Sequence
from unittest.mock import MagicMock

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage

from docrag.config import Settings
from docrag.documents.lifecycle import DocumentLifecycle
from docrag.documents.store import InMemoryDocumentStore
from docrag.errors import VectorIndexError
from docrag.ingestion.embedder import EmbeddingClient
from docrag.ingestion.pipeline import IndexingPipeline
from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import MetadataFilter, SearchMatch, VectorRecord
from docrag.retrieval.retriever import Retriever
from docrag.service import DocRagService


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class FakeEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings; records every call."""

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(token.encode()) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in vec))
        return [v / norm for v in vec] if norm else vec

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self._vector(text)


class InMemoryVectorIndex(VectorIndexBase):
    """Brute-force cosine index keyed by vector id."""

    def __init__(self) -> None:
        super().__init__("test-collection")
        self.records: dict[str, VectorRecord] = {}
        self.upsert_calls = 0
        self.fail_on_upsert_call: int | None = None
        self.last_filters: list[MetadataFilter] | None = None
        self.last_top_k: int | None = None

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        self.upsert_calls += 1
        if self.fail_on_upsert_call is not None and self.upsert_calls == self.fail_on_upsert_call:
            raise VectorIndexError("index unavailable")
        for record in records:
            self.records[record.id] = record

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[SearchMatch]:
        self.last_filters = filters
        self.last_top_k = top_k
        matches = []
        for record in self.records.values():
            if filters and not all(f.matches(record.metadata) for f in filters):
                continue
            matches.append(
                SearchMatch(
                    id=record.id,
                    score=_cosine(vector, record.values),
                    metadata=dict(record.metadata) if include_metadata else {},
                )
            )
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def delete_document(self, document_id: str) -> None:
        self.records = {
            k: v for k, v in self.records.items() if v.metadata.get("documentId") != document_id
        }

    def health_check(self) -> bool:
        return True

    def delete(self, ids: list[str]) -> None:
        for vid in ids:
            self.records.pop(vid, None)

    def ids_for(self, document_id: str) -> set[str]:
        return {k for k, v in self.records.items() if v.metadata.get("documentId") == document_id}


class CannedVectorIndex(InMemoryVectorIndex):
    """Returns a fixed list of matches regardless of the query vector."""

    def __init__(self, matches: list[SearchMatch]) -> None:
        super().__init__()
        self.matches = matches

    def query(self, vector, *, top_k=5, filters=None, include_metadata=True):  # noqa: ANN001
        self.last_filters = filters
        self.last_top_k = top_k
        return self.matches[:top_k]


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


def _make_match(
    score: float,
    *,
    document_id: str = "doc_a",
    filename: str = "a.txt",
    chunk_index: int = 0,
    content: str = "Some chunk content.",
    file_type: str = "text/plain",
) -> SearchMatch:
    return SearchMatch(
        id=f"{document_id}-{chunk_index}",
        score=score,
        metadata={
            "documentId": document_id,
            "filename": filename,
            "fileType": file_type,
            "uploadDate": "2026-01-01T00:00:00+00:00",
            "chunkIndex": chunk_index,
            "content": content,
        },
    )


def _fake_llm(content: str = "The refund window is 30 days [1].") -> MagicMock:
    llm = MagicMock()
    llm.invoke.return_value = AIMessage(content=content)
    return llm


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def embedding_client(fake_embeddings: FakeEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(fake_embeddings, attempts=1, base_delay=0.0)


@pytest.fixture()
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def lifecycle(store: InMemoryDocumentStore) -> DocumentLifecycle:
    return DocumentLifecycle(store)


@pytest.fixture()
def pipeline(
    lifecycle: DocumentLifecycle,
    vector_index: InMemoryVectorIndex,
    embedding_client: EmbeddingClient,
) -> IndexingPipeline:
    return IndexingPipeline(lifecycle, vector_index, embedding_client, batch_size=64)


@pytest.fixture()
def retriever(vector_index: InMemoryVectorIndex, embedding_client: EmbeddingClient) -> Retriever:
    return Retriever(vector_index, embedding_client)


@pytest.fixture()
def app_settings() -> Settings:
    return Settings(
        _env_file=None,
        provider_max_retries=1,
        provider_retry_base_delay=0.0,
    )


@pytest.fixture()
def mock_llm() -> MagicMock:
    return _fake_llm()


@pytest.fixture()
def service(
    store: InMemoryDocumentStore,
    vector_index: InMemoryVectorIndex,
    embedding_client: EmbeddingClient,
    mock_llm: MagicMock,
    app_settings: Settings,
) -> DocRagService:
    return DocRagService(
        store=store,
        index=vector_index,
        embeddings=embedding_client,
        llm=mock_llm,
        config=app_settings,
    )


@pytest.fixture()
def make_match():
    """Factory for :class:`SearchMatch` objects with realistic chunk metadata."""
    return _make_match


@pytest.fixture()
def canned_index():
    """Factory for an index that always returns the given matches."""
    return CannedVectorIndex


@pytest.fixture()
def make_llm():
    """Factory for a mock chat model replying with fixed content."""
    return _fake_llm
