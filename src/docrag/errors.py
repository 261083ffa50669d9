"""Error hierarchy shared by every layer.

Each error carries an HTTP ``status_code`` and a short machine-readable
``code`` so the serving layer can turn it into a structured response
without knowing which component raised it.
"""

from __future__ import annotations


class DocRagError(Exception):
    """Base class for all expected failures."""

    status_code: int = 500
    code: str = "docrag_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class TransientProviderError(DocRagError):
    """A provider call failed in a way that may succeed on retry (timeout, connection reset)."""

    status_code = 503
    code = "provider_unavailable"


class ValidationError(DocRagError):
    """Upload rejected before any processing (type or size)."""

    status_code = 400
    code = "validation_error"


class ExtractionError(DocRagError):
    status_code = 422
    code = "extraction_error"


class EmbeddingProviderError(DocRagError):
    status_code = 502
    code = "embedding_provider_error"


class VectorIndexError(DocRagError):
    status_code = 502
    code = "vector_index_error"


class NotFoundError(DocRagError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(DocRagError):
    """A status change the lifecycle forbids, or a lost compare-and-swap race."""

    status_code = 409
    code = "invalid_transition"


class InternalError(DocRagError):
    status_code = 500
    code = "internal_error"
