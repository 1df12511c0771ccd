from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider credentials
    openai_api_key: str = ""
    voyage_ai_api_key: str = ""
    anthropic_api_key: str = ""

    # Embedding settings
    embedding_provider: Literal["openai", "voyage"] = "openai"

    # Database settings
    local_vector_db_path: str = "data/chunks.json"

    # Chunker settings
    chunk_min_tokens: int = 80
    chunk_target_min_tokens: int = 250
    chunk_target_max_tokens: int = 350

    # Re-index workflow settings
    reindex_max_attempts: int = 3
    reindex_backoff_seconds: float = 1.0
    reindex_backoff_max_seconds: float = 30.0
    reindex_workers: int = 4

    # Retrieval settings
    rag_closest_chunks: int = 10
    rrf_k: int = 60

    # LLM settings
    llm_model: str = "claude-3-5-sonnet-20241022"
    llm_max_tokens: int = 1024
    system_message: str = """You are a study assistant that answers questions using ONLY the user's own notes.

Use proper Markdown formatting:
- Bold for emphasis using **text**
- Lists with - or numbers
- Quote blocks with > when quoting a note

Cite every claim with the note title and section it came from. If the notes do not contain the answer, say so plainly instead of using general knowledge.
"""
    log_level: str = "INFO"  # Can be DEBUG, INFO, WARNING, ERROR, CRITICAL


settings = Settings()
