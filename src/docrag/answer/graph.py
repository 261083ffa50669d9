"""LangGraph answer workflow — retrieve, gate on confidence, then generate or refuse.

Graph topology::

      ┌──────────┐
      │ retrieve │   ← embed question, filtered query, pack context
      └────┬─────┘
           │ confidence gate
     ┌─────┴──────┐
     ▼            ▼
 ┌────────┐  ┌──────────┐
 │ refuse │  │ generate │   ← LLM call with packed context + recent history
 └───┬────┘  └────┬─────┘
     ▼            ▼
          [ END ]

``refuse`` never calls the LLM: when the gate is closed the fixed
insufficient-information answer is returned with no sources.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel
from langgraph.graph import END, StateGraph

from docrag.answer.prompts import build_answer_prompt
from docrag.answer.state import Answer, AnswerState, ChatTurn
from docrag.config import settings
from docrag.retrieval.models import INSUFFICIENT_INFORMATION_ANSWER
from docrag.retrieval.retriever import Retriever

logger = logging.getLogger(__name__)


class AnswerComposer:
    """Builds grounded answers from retrieved context.

    Parameters
    ----------
    retriever:
        Retrieval engine producing gated, packed context.
    llm:
        Chat model (see :func:`docrag.answer.llm.get_llm`); only invoked
        when the confidence gate is open.
    history_turns:
        How many of the most recent conversation turns are included.
    """

    def __init__(
        self,
        retriever: Retriever,
        llm: BaseChatModel | Any,
        *,
        history_turns: int = settings.history_turns,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self.history_turns = history_turns
        self.graph = self._build_graph()

    # -- public API -----------------------------------------------------------

    def answer(
        self,
        question: str,
        k: int | None = None,
        *,
        document_ids: Sequence[str] | None = None,
        file_types: Sequence[str] | None = None,
        history: Sequence[ChatTurn] = (),
    ) -> Answer:
        state: AnswerState = {
            "question": question,
            "k": k or self._retriever.default_k,
            "document_ids": list(document_ids) if document_ids else None,
            "file_types": list(file_types) if file_types else None,
            "history": list(history),
        }
        result = self.graph.invoke(state)
        return Answer(answer=result["answer"], sources=result.get("sources", []))

    # -- nodes ----------------------------------------------------------------

    def retrieve(self, state: AnswerState) -> dict[str, Any]:
        result = self._retriever.retrieve(
            state["question"],
            state.get("k"),
            document_ids=state.get("document_ids"),
            file_types=state.get("file_types"),
        )
        return {"retrieval": result}

    def generate(self, state: AnswerState) -> dict[str, Any]:
        retrieval = state["retrieval"]
        messages = build_answer_prompt(
            state["question"],
            retrieval.context,
            state.get("history", []),
            history_turns=self.history_turns,
        )
        response = self._llm.invoke(messages)
        content = response.content if isinstance(response.content, str) else str(response.content)
        logger.info("Generated answer (%d chars, %d sources)", len(content), len(retrieval.sources))
        return {"answer": content, "sources": retrieval.sources}

    @staticmethod
    def refuse(state: AnswerState) -> dict[str, Any]:
        return {"answer": INSUFFICIENT_INFORMATION_ANSWER, "sources": []}

    @staticmethod
    def confidence_gate(state: AnswerState) -> str:
        """Conditional edge after ``retrieve``."""
        if state["retrieval"].insufficient:
            return "refuse"
        return "generate"

    # -- internals ------------------------------------------------------------

    def _build_graph(self):  # noqa: ANN202
        workflow = StateGraph(AnswerState)

        workflow.add_node("retrieve", self.retrieve)
        workflow.add_node("generate", self.generate)
        workflow.add_node("refuse", self.refuse)

        workflow.set_entry_point("retrieve")
        workflow.add_conditional_edges(
            "retrieve",
            self.confidence_gate,
            {"generate": "generate", "refuse": "refuse"},
        )
        workflow.add_edge("generate", END)
        workflow.add_edge("refuse", END)

        return workflow.compile()
