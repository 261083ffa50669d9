"""Chroma implementation of the vector-index abstraction."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import chromadb
import httpx

from docrag.config import settings
from docrag.errors import TransientProviderError, VectorIndexError
from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import MetadataFilter, SearchMatch, VectorRecord
from docrag.retry import call_with_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OP_MAP = {
    "eq": "$eq",
    "in": "$in",
}

_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


class VectorIndexUnavailableError(VectorIndexError, TransientProviderError):
    """Chroma could not be reached; eligible for retry."""


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool (no ``None``)."""
    return {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}


class ChromaVectorIndex(VectorIndexBase):
    """Chroma-backed vector index.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server location (ignored when *client* is given).
    distance:
        HNSW space; ``cosine`` makes ``1 - distance`` a similarity where
        1.0 means identical.
    client:
        Pre-built Chroma client, e.g. ``chromadb.EphemeralClient()``.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        distance: str = settings.chroma_distance,
        client: Any = None,
        attempts: int = settings.provider_max_retries,
        base_delay: float = settings.provider_retry_base_delay,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": distance},
        )
        self.distance = distance
        self.attempts = attempts
        self.base_delay = base_delay

    # -- VectorIndexBase overrides --------------------------------------------

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._run(
            lambda: self._collection.upsert(
                ids=[r.id for r in records],
                embeddings=[r.values for r in records],
                documents=[r.metadata.get("content", "") for r in records],
                metadatas=[_flatten_metadata(r.metadata) for r in records],
            ),
            what=f"upsert of {len(records)} vectors",
        )

    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[SearchMatch]:
        where = _build_chroma_where(filters) if filters else None
        include = ["metadatas", "distances"] if include_metadata else ["distances"]

        results = self._run(
            lambda: self._collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                where=where,
                include=include,
            ),
            what="query",
        )

        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0] if include_metadata else []

        matches: list[SearchMatch] = []
        for i, (vid, dist) in enumerate(zip(ids, distances)):
            meta = (metas[i] if i < len(metas) else None) or {}
            matches.append(SearchMatch(id=vid, score=self._to_similarity(dist), metadata=dict(meta)))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def delete_document(self, document_id: str) -> None:
        self._run(
            lambda: self._collection.delete(
                where=_build_chroma_where([MetadataFilter.equals("documentId", document_id)])
            ),
            what=f"delete vectors of {document_id}",
        )

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def delete(self, ids: list[str]) -> None:
        self._run(lambda: self._collection.delete(ids=ids), what=f"delete of {len(ids)} vectors")

    # -- internals ------------------------------------------------------------

    def _to_similarity(self, distance: float) -> float:
        if self.distance == "cosine":
            return 1.0 - distance
        # l2 / ip: squash into (0, 1]
        return 1.0 / (1.0 + distance)

    def _run(self, fn: Callable[[], T], *, what: str) -> T:
        def attempt() -> T:
            try:
                return fn()
            except _TRANSIENT_EXCEPTIONS as exc:
                raise VectorIndexUnavailableError(f"Vector index unavailable during {what}: {exc}") from exc
            except Exception as exc:
                raise VectorIndexError(f"Vector index {what} failed: {exc}") from exc

        return call_with_retries(
            attempt, attempts=self.attempts, base_delay=self.base_delay, what=f"chroma {what}"
        )
