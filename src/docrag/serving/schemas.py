"""Request / response schemas for the HTTP API (camelCase on the wire)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docrag.answer.state import ChatTurn
from docrag.documents.models import DocumentRecord
from docrag.retrieval.models import ChatSource, SearchHit


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ──────────────────────────────────────────────────────────
class EmbeddingRequest(_CamelModel):
    """Index one document, or sweep everything in ``embedding`` when ``documentId`` is absent."""

    document_id: str | None = None
    batch_size: int | None = Field(default=None, ge=1)
    reindex: bool = False


class SearchRequest(_CamelModel):
    q: str = ""
    k: int = Field(default=5, ge=1, le=100)
    document_ids: list[str] | None = None
    file_types: list[str] | None = None


class ChatRequest(_CamelModel):
    question: str = ""
    k: int = Field(default=5, ge=1, le=100)
    document_ids: list[str] | None = None
    file_types: list[str] | None = None
    history: list[ChatTurn] = Field(default_factory=list)


# ── Responses ─────────────────────────────────────────────────────────
class UploadErrorItem(_CamelModel):
    filename: str
    reason: str


class UploadResponse(_CamelModel):
    created: list[DocumentRecord] = Field(default_factory=list)
    errors: list[UploadErrorItem] = Field(default_factory=list)


class DocumentListResponse(_CamelModel):
    documents: list[DocumentRecord]


class ProcessedItem(_CamelModel):
    id: str
    chunks: int


class FailureItem(_CamelModel):
    id: str
    reason: str


class EmbeddingResponse(_CamelModel):
    processed: list[ProcessedItem] = Field(default_factory=list)
    failures: list[FailureItem] = Field(default_factory=list)
    message: str | None = None


class SearchResponse(_CamelModel):
    q: str
    k: int
    results: list[SearchHit]


class ChatResponse(_CamelModel):
    answer: str
    sources: list[ChatSource]


class FixedItem(_CamelModel):
    id: str
    filename: str


class FixStuckResponse(_CamelModel):
    message: str
    fixed: list[FixedItem] = Field(default_factory=list)
