"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Two sources are read, in priority order:
#
#   1. Environment variables, e.g. KB_MAX_CONCURRENT=4 (always win)
#   2. The .env file in the project root (local development)
#
# Field ``kb_max_concurrent`` maps to env var ``KB_MAX_CONCURRENT``.
# Defaults apply when neither source provides a value.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """studykb knowledge-base settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    # Empty string = "not configured"; main.py picks the first configured one.
    llm_provider: str = ""  # "openai" | "anthropic" | "" (auto)
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""  # defaults to gpt-4o-mini
    openai_embedding_model: str = ""  # defaults to text-embedding-3-small
    anthropic_api_key: str = ""
    anthropic_model: str = ""  # defaults to claude-sonnet-4-20250514
    llm_timeout_seconds: float = 60.0

    # === Ingestion pipeline ===
    kb_max_concurrent: int = 2
    chunk_min_tokens: int = 300
    chunk_max_tokens: int = 600
    chunk_target_tokens: int = 450
    chunking_cache_max_entries: int = 1000
    chunking_cache_ttl_seconds: int = 86400
    embedding_batch_size: int = 100
    pdf_ocr_embedded_images: bool = False

    # === OCR ===
    ocr_languages: str = "chi_sim+eng"
    ocr_timeout_seconds: float = 30.0

    # === Retrieval ===
    retrieval_mode: str = "keyword"  # "keyword" | "vector"
    retrieval_top_documents: int = 3
    retrieval_max_chunks: int = 5
    retrieval_max_chunks_selected: int = 10
    retrieval_min_chunk_chars: int = 50
    retrieval_max_chunk_chars: int = 1500
    retrieval_max_keywords: int = 8
    vector_similarity_threshold: float = 0.6
    answer_temperature: float = 0.3
    answer_max_tokens: int = 2000

    # === Storage ===
    storage_backend: str = "memory"  # "memory" | "sqlite"
    sqlite_db_path: str = "data/knowledge_base.db"
    blob_dir: str = "data/uploads"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers
