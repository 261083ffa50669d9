"""Retrieval engine — filtered vector search, confidence gate and context packing.

Usage::

    retriever = Retriever(index, embeddings)
    result = retriever.retrieve("What is the notice period?", k=5)
    if result.insufficient:
        ...  # refuse without calling the LLM
    for source in result.sources:
        print(source.citation_index, source.filename, source.snippet)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docrag.config import settings
from docrag.ingestion.embedder import EmbeddingClient
from docrag.retrieval.base import VectorIndexBase
from docrag.retrieval.models import ChatSource, MetadataFilter, RetrievalResult, SearchHit, SearchMatch
from docrag.retrieval.snippets import make_snippet

logger = logging.getLogger(__name__)


def build_filters(
    document_ids: Sequence[str] | None = None,
    file_types: Sequence[str] | None = None,
) -> list[MetadataFilter]:
    """``$in`` filters on ``documentId`` / ``fileType``; empty lists mean no restriction."""
    filters: list[MetadataFilter] = []
    if document_ids:
        filters.append(MetadataFilter.one_of("documentId", list(document_ids)))
    if file_types:
        filters.append(MetadataFilter.one_of("fileType", list(file_types)))
    return filters


def pack_context(
    matches: Sequence[SearchMatch],
    question: str,
    *,
    char_budget: int = 2400,
    snippet_radius: int = 220,
) -> tuple[list[ChatSource], str]:
    """Pack matches into numbered citation lines under *char_budget* characters.

    Matches are taken in descending score order; packing stops at the
    first line that would overflow the budget.  Returns the sources (with
    1-based ``citation_index``) and the packed context text.
    """
    sources: list[ChatSource] = []
    context = ""

    for match in sorted(matches, key=lambda m: m.score, reverse=True):
        content = match.content
        if not content:
            continue

        meta = match.metadata
        n = len(sources) + 1
        snippet = make_snippet(content, question, snippet_radius)
        line = f"[{n}] {meta.get('filename')} (chunk {meta.get('chunkIndex')}): {snippet}\n\n"
        if len(context) + len(line) > char_budget:
            break

        sources.append(
            ChatSource(
                document_id=str(meta.get("documentId", "")),
                filename=str(meta.get("filename", "")),
                chunk_index=int(meta.get("chunkIndex", 0)),
                snippet=snippet,
                score=match.score,
                citation_index=n,
            )
        )
        context += line

    return sources, context.strip()


class Retriever:
    """Query-side counterpart of the indexing pipeline.

    Parameters
    ----------
    index:
        Vector index holding the chunk vectors.
    embeddings:
        The *same* embedding client used for ingestion.
    min_score:
        Confidence gate: if the best match scores below this, the result
        is the insufficient-information outcome.
    char_budget:
        Maximum characters of packed context.
    min_candidates:
        Lower bound on how many candidates are fetched for packing.
    """

    def __init__(
        self,
        index: VectorIndexBase,
        embeddings: EmbeddingClient,
        *,
        min_score: float = settings.retrieval_min_score,
        char_budget: int = settings.context_char_budget,
        min_candidates: int = settings.retrieval_min_candidates,
        snippet_radius: int = settings.snippet_radius,
        search_snippet_radius: int = settings.search_snippet_radius,
        default_k: int = settings.retrieval_default_k,
    ) -> None:
        self._index = index
        self._embeddings = embeddings
        self.min_score = min_score
        self.char_budget = char_budget
        self.min_candidates = min_candidates
        self.snippet_radius = snippet_radius
        self.search_snippet_radius = search_snippet_radius
        self.default_k = default_k

    # -- public API -----------------------------------------------------------

    def retrieve(
        self,
        question: str,
        k: int | None = None,
        *,
        document_ids: Sequence[str] | None = None,
        file_types: Sequence[str] | None = None,
    ) -> RetrievalResult:
        """Embed, query, gate and pack context for answer generation."""
        k = k or self.default_k
        vector = self._embeddings.embed_query(question)
        matches = self._index.query(
            vector,
            top_k=max(k, self.min_candidates),
            filters=build_filters(document_ids, file_types) or None,
            include_metadata=True,
        )

        best = max((m.score for m in matches), default=0.0)
        if not matches or best < self.min_score:
            logger.info(
                "Confidence gate closed (%d matches, best score %.3f < %.2f)",
                len(matches), best, self.min_score,
            )
            return RetrievalResult.insufficient_information()

        sources, context = pack_context(
            matches,
            question,
            char_budget=self.char_budget,
            snippet_radius=self.snippet_radius,
        )
        logger.info("Packed %d of %d matches (%d chars)", len(sources), len(matches), len(context))
        return RetrievalResult(sources=sources, context=context)

    def search(
        self,
        query: str,
        k: int | None = None,
        *,
        document_ids: Sequence[str] | None = None,
        file_types: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        """Plain ranked search with snippets — no gate, no generation."""
        k = k or self.default_k
        vector = self._embeddings.embed_query(query)
        matches = self._index.query(
            vector,
            top_k=k,
            filters=build_filters(document_ids, file_types) or None,
            include_metadata=True,
        )
        return [self._to_hit(m, query) for m in matches]

    # -- internals ------------------------------------------------------------

    def _to_hit(self, match: SearchMatch, query: str) -> SearchHit:
        meta = match.metadata
        return SearchHit(
            id=match.id,
            score=match.score,
            document_id=str(meta.get("documentId", "")),
            filename=str(meta.get("filename", "")),
            file_type=str(meta.get("fileType", "")),
            chunk_index=int(meta.get("chunkIndex", 0)),
            snippet=make_snippet(match.content, query, self.search_snippet_radius),
            chunk_content=match.content,
            upload_date=meta.get("uploadDate"),
        )
