"""Embedding provider — LangChain embeddings behind a retrying, order-checked client."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import openai

from docrag.config import settings
from docrag.errors import EmbeddingProviderError, TransientProviderError
from docrag.retry import call_with_retries

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class EmbeddingTimeoutError(EmbeddingProviderError, TransientProviderError):
    """Embedding call timed out or could not connect; eligible for retry."""


def get_embedding_function(
    backend: str = settings.embedding_backend,
    model: str = settings.embedding_model,
) -> Embeddings:
    """Return the configured LangChain embedding function.

    ``openai`` uses ``OpenAIEmbeddings`` (``text-embedding-3-small`` by
    default); ``huggingface`` runs a local sentence-transformer.  Retries
    are handled by :class:`EmbeddingClient`, so the client-level ones are
    disabled.
    """
    if backend == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {
            "model": model,
            "timeout": settings.provider_timeout_seconds,
            "max_retries": 0,
        }
        if settings.openai_api_key:
            kwargs["api_key"] = settings.openai_api_key
        return OpenAIEmbeddings(**kwargs)
    if backend == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=model)
    raise ValueError(f"Unsupported embedding backend: {backend!r}")


class EmbeddingClient:
    """Order-preserving wrapper around a LangChain :class:`Embeddings`.

    Parameters
    ----------
    embeddings:
        Any LangChain embeddings implementation.  The same instance (and
        therefore the same model) must serve both ingestion and queries.
    attempts:
        Maximum attempts per provider call (transient failures only).
    base_delay:
        First back-off delay in seconds; doubles on every retry.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        attempts: int = settings.provider_max_retries,
        base_delay: float = settings.provider_retry_base_delay,
    ) -> None:
        self._embeddings = embeddings
        self.attempts = attempts
        self.base_delay = base_delay

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts*; the i-th vector belongs to the i-th input."""
        if not texts:
            return []
        batch = list(texts)
        vectors = call_with_retries(
            lambda: self._call(self._embeddings.embed_documents, batch),
            attempts=self.attempts,
            base_delay=self.base_delay,
            what=f"embedding batch of {len(batch)}",
        )
        if len(vectors) != len(batch):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(batch)} inputs"
            )
        return [list(v) for v in vectors]

    def embed_query(self, text: str) -> list[float]:
        vector = call_with_retries(
            lambda: self._call(self._embeddings.embed_query, text),
            attempts=self.attempts,
            base_delay=self.base_delay,
            what="query embedding",
        )
        return list(vector)

    @staticmethod
    def _call(fn, arg):  # noqa: ANN001, ANN205
        try:
            return fn(arg)
        except _TRANSIENT_EXCEPTIONS as exc:
            raise EmbeddingTimeoutError(f"Embedding provider unavailable: {exc}") from exc
        except Exception as exc:
            raise EmbeddingProviderError(f"Embedding provider error: {exc}") from exc
