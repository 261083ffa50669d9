"""Prompt templates for grounded answer generation."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from docrag.retrieval.models import INSUFFICIENT_INFORMATION_ANSWER

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docrag.answer.state import ChatTurn

SYSTEM_PROMPT = " ".join(
    [
        "You are a helpful assistant that answers ONLY from the provided context.",
        f'If the answer is not in the context, say: "{INSUFFICIENT_INFORMATION_ANSWER}"',
        "Keep answers concise. Include inline citations like [1], [2] that refer to the sources list.",
    ]
)


def build_user_message(question: str, context: str) -> str:
    return "\n".join(
        [
            f"Question:\n{question}\n",
            f"Context (excerpts):\n{context or '(no context)'}",
            "\nInstructions:",
            "- Answer using only the context excerpts above.",
            "- When a sentence comes from an excerpt, add [n] with the correct number.",
            "- If the context is insufficient, say so plainly.",
        ]
    )


def build_answer_prompt(
    question: str,
    context: str,
    history: Sequence[ChatTurn] = (),
    *,
    history_turns: int = 4,
) -> list[BaseMessage]:
    """Assemble system instruction, the last *history_turns* turns, and the user turn."""
    messages: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    recent = list(history)[-history_turns:] if history_turns > 0 else []
    for turn in recent:
        if turn.role == "assistant":
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(HumanMessage(content=turn.content))
    messages.append(HumanMessage(content=build_user_message(question, context)))
    return messages
