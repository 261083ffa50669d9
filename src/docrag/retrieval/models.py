"""Domain models for vector records, search matches and citations."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

INSUFFICIENT_INFORMATION_ANSWER = (
    "I don't have enough information in the uploaded documents to answer that."
)


def vector_id(document_id: str, chunk_index: int) -> str:
    """Deterministic vector id — re-indexing overwrites instead of duplicating."""
    return f"{document_id}-{chunk_index}"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-index queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"documentId"``, ``"fileType"``).
    operator:
        Comparison operator, either ``eq`` or ``in``.
    value:
        The value (or list of values for ``in``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=list(values))

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate the filter against a metadata dict (for in-process indexes)."""
        actual = metadata.get(self.field)
        if self.operator == "eq":
            return actual == self.value
        if self.operator == "in":
            return actual in self.value
        raise ValueError(f"Unsupported filter operator: {self.operator!r}")


class VectorRecord(BaseModel):
    """One embedded chunk as stored in the vector index.

    ``metadata`` carries ``documentId``, ``filename``, ``fileType``,
    ``uploadDate``, ``chunkIndex`` and ``content``.
    """

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchMatch(BaseModel):
    """A raw vector-index hit (higher score = closer)."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.metadata.get("content") or ""


class ChatSource(_CamelModel):
    """Citation surfaced to the caller; ``citation_index`` matches ``[n]`` in the answer."""

    document_id: str
    filename: str
    chunk_index: int
    snippet: str
    score: float
    citation_index: int


class SearchHit(_CamelModel):
    """One row of a plain (non-generative) search."""

    id: str
    score: float
    document_id: str
    filename: str
    file_type: str = ""
    chunk_index: int
    snippet: str
    chunk_content: str
    upload_date: str | None = None


class RetrievalResult(BaseModel):
    """Packed, citation-indexed context — or the insufficient-information outcome."""

    sources: list[ChatSource] = Field(default_factory=list)
    context: str = ""
    insufficient: bool = False

    @classmethod
    def insufficient_information(cls) -> RetrievalResult:
        return cls(insufficient=True)
