"""Abstract base class for vector-index backends.

Adding a new backend (Pinecone, Qdrant …) only requires subclassing
:class:`VectorIndexBase` and implementing the abstract methods.  The
indexing pipeline and the retriever are backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from docrag.retrieval.models import MetadataFilter, SearchMatch, VectorRecord


class VectorIndexBase(ABC):
    """Backend-agnostic vector-index interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, records: Sequence[VectorRecord]) -> None:
        """Insert or overwrite *records*, keyed by ``record.id``."""
        ...

    @abstractmethod
    def query(
        self,
        vector: list[float],
        *,
        top_k: int = 5,
        filters: list[MetadataFilter] | None = None,
        include_metadata: bool = True,
    ) -> list[SearchMatch]:
        """Return up to *top_k* nearest neighbours ordered by descending score.

        Parameters
        ----------
        vector:
            Dense query vector (same model as the indexed vectors).
        top_k:
            Maximum number of matches.
        filters:
            Optional metadata filters; all of them must hold.
        include_metadata:
            When ``False`` matches carry an empty metadata dict.
        """
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None:
        """Remove every vector that belongs to *document_id*."""
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete vectors by their IDs; unknown IDs are ignored."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...
