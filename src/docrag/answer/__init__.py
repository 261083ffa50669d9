"""
Answer — grounded, citation-bearing answer generation on top of retrieval.

Public API
----------
- :class:`AnswerComposer` — compiled LangGraph ``retrieve → generate | refuse``.
- :class:`Answer`, :class:`ChatTurn` — input / output models.
- :func:`build_answer_prompt` — the prompt the LLM receives.
"""

from docrag.answer.graph import AnswerComposer
from docrag.answer.prompts import SYSTEM_PROMPT, build_answer_prompt
from docrag.answer.state import Answer, AnswerState, ChatTurn

__all__ = [
    "SYSTEM_PROMPT",
    "Answer",
    "AnswerComposer",
    "AnswerState",
    "ChatTurn",
    "build_answer_prompt",
]
