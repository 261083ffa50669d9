"""State flowing through the answer graph, plus its input/output models."""

from __future__ import annotations

from typing import Literal, TypedDict

from pydantic import BaseModel, Field

from docrag.retrieval.models import ChatSource, RetrievalResult


class ChatTurn(BaseModel):
    """One earlier message of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class Answer(BaseModel):
    """Generated (or refused) answer with the sources its ``[n]`` markers refer to."""

    answer: str
    sources: list[ChatSource] = Field(default_factory=list)


class AnswerState(TypedDict, total=False):
    """Typed state for the answer graph.

    Attributes
    ----------
    question:
        The user's question.
    k:
        Requested number of results.
    document_ids / file_types:
        Optional ``$in`` filters.
    history:
        Earlier conversation turns (only the most recent few are used).
    retrieval:
        Output of the ``retrieve`` node.
    answer / sources:
        Final output, set by ``generate`` or ``refuse``.
    """

    question: str
    k: int
    document_ids: list[str] | None
    file_types: list[str] | None
    history: list[ChatTurn]
    retrieval: RetrievalResult
    answer: str
    sources: list[ChatSource]
