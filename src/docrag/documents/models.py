"""Domain models for uploaded documents and their text chunks."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ProcessingStatus(str, Enum):
    """Lifecycle stage of a document.

    ``uploading → extracting → embedding → completed``; ``error`` is
    reachable from every non-terminal stage.
    """

    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    EMBEDDING = "embedding"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.ERROR)


class DocumentRecord(BaseModel):
    """Identity and lifecycle of one uploaded document.

    Attributes
    ----------
    id:
        Stable unique identifier (``doc_<uuid>``).
    filename / file_type / file_size:
        What the client uploaded; ``file_type`` is the MIME type.
    upload_date:
        UTC creation timestamp, never changed after creation.
    processing_status:
        Current :class:`ProcessingStatus`.
    extracted_content:
        Plain text produced by the extractor for the current attempt.
    chunk_count:
        Number of indexed chunks; present iff status is ``completed``.
    error_message:
        Cause of failure; present only when status is ``error``.
    metadata:
        Opaque key/value data passed through untouched.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=False)

    id: str
    filename: str
    file_type: str = ""
    file_size: int = 0
    upload_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_status: ProcessingStatus = ProcessingStatus.UPLOADING
    extracted_content: str | None = None
    chunk_count: int | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_status_fields(self) -> DocumentRecord:
        completed = self.processing_status is ProcessingStatus.COMPLETED
        if completed != (self.chunk_count is not None):
            raise ValueError("chunk_count must be set exactly when status is 'completed'")
        if self.error_message is not None and self.processing_status is not ProcessingStatus.ERROR:
            raise ValueError("error_message is only allowed when status is 'error'")
        return self

    def summary(self) -> DocumentRecord:
        """Return a copy without the (potentially large) extracted text."""
        return self.model_copy(update={"extracted_content": None})


class TextChunk(BaseModel):
    """A bounded slice of a document's text — the unit of embedding."""

    chunk_index: int = Field(ge=0)
    content: str = Field(min_length=1)
