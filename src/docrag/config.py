"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for a local server)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the chat API. Leave empty to use OpenAI cloud. "
            "Set to any OpenAI-compatible endpoint (vLLM, Ollama) for local serving."
        ),
    )
    llm_temperature: float = 0.2

    # Embedding: must stay identical between ingestion and query time
    embedding_backend: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"

    # Vector index
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "documents"
    chroma_distance: str = "cosine"

    # Chunking / indexing
    chunk_max_tokens: int = 1000
    chunk_overlap_tokens: int = 100
    embed_batch_size: int = 64
    provider_timeout_seconds: float = 30.0
    provider_max_retries: int = 3
    provider_retry_base_delay: float = 0.5

    # Retrieval
    retrieval_default_k: int = 5
    retrieval_min_candidates: int = 8
    retrieval_min_score: float = 0.15
    context_char_budget: int = 2400
    snippet_radius: int = 220
    search_snippet_radius: int = 180
    history_turns: int = 4

    # Uploads / maintenance
    max_upload_bytes: int = 10 * 1024 * 1024
    stuck_after_seconds: int = 120

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Module-level instance; import `settings` wherever needed.
settings = Settings()
