"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible server** — set ``LLM_BASE_URL`` to e.g. a vLLM or
   Ollama ``/v1`` endpoint; ``ChatOpenAI`` works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from docrag.config import settings

logger = logging.getLogger(__name__)


def get_llm(temperature: float = settings.llm_temperature) -> ChatOpenAI:
    """Return the configured chat model.

    A low temperature keeps grounded answers close to the context.  When
    ``settings.llm_base_url`` is set a dummy API key (``"EMPTY"``) is used
    for servers that do not require authentication.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "timeout": settings.provider_timeout_seconds,
        "max_retries": settings.provider_max_retries,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
