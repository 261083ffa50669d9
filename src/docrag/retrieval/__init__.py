"""
Retrieval — vector index access, confidence gating and context packing.

Public surface
--------------
- :class:`Retriever` — ``retrieve`` (gated, packed context) and ``search``.
- :class:`VectorIndexBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`ChromaVectorIndex` — default Chroma backend.
- :class:`ChatSource`, :class:`SearchHit`, :class:`RetrievalResult`,
  :class:`MetadataFilter`, :class:`VectorRecord`, :class:`SearchMatch` — data models.
"""

from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import (
    INSUFFICIENT_INFORMATION_ANSWER,
    ChatSource,
    MetadataFilter,
    RetrievalResult,
    SearchHit,
    SearchMatch,
    VectorRecord,
    vector_id,
)
from docrag.retrieval.retriever import Retriever, build_filters, pack_context
from docrag.retrieval.snippets import make_snippet

__all__ = [
    "INSUFFICIENT_INFORMATION_ANSWER",
    "ChatSource",
    "ChromaVectorIndex",
    "MetadataFilter",
    "RetrievalResult",
    "Retriever",
    "SearchHit",
    "SearchMatch",
    "VectorIndexBase",
    "VectorRecord",
    "build_filters",
    "make_snippet",
    "pack_context",
    "vector_id",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorIndex to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorIndex":
        from docrag.retrieval.chroma_store import ChromaVectorIndex

        return ChromaVectorIndex
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
