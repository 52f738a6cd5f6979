"""studykb composition root.

Wires providers, stores and services into a ready
:class:`~studykb.services.knowledge_base_service.KnowledgeBaseService`.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.  An HTTP or CLI layer calls
:func:`build_knowledge_base` once at startup and keeps the returned facade.
"""

from __future__ import annotations

from typing import Any

import structlog

from studykb.config.loader import load_config
from studykb.config.settings import Settings
from studykb.interfaces.blob_store import IBlobStore
from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.models.rag import SearchMethod
from studykb.pipeline.ingestion_queue import IngestionQueue
from studykb.pipeline.progress_tracker import ProgressTracker
from studykb.providers.cache.memory_cache import MemoryCacheProvider
from studykb.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from studykb.providers.llm.anthropic_provider import AnthropicLLMProvider
from studykb.providers.llm.openai_provider import OpenAILLMProvider
from studykb.providers.ocr.tesseract_provider import TesseractOCRProvider
from studykb.providers.storage.blob_store import FilesystemBlobStore
from studykb.providers.storage.memory_store import MemoryChunkStore, MemoryDocumentStore
from studykb.providers.storage.sqlite_store import (
    SQLiteChunkStore,
    SQLiteDocumentStore,
    initialize_schema,
)
from studykb.services.ingestion.embedding_batcher import EmbeddingBatcher
from studykb.services.ingestion.ingestion_pipeline import IngestionPipeline
from studykb.services.ingestion.language_detector import LanguageDetector
from studykb.services.ingestion.semantic_chunker import SemanticChunker
from studykb.services.ingestion.text_extractor import TextExtractor
from studykb.services.knowledge_base_service import KnowledgeBaseService
from studykb.services.retrieval.keyword_search import RetrievalLimits
from studykb.services.retrieval.retrieval_engine import RetrievalEngine
from studykb.utils.errors import ConfigurationError
from studykb.utils.logging import configure_logging, get_logger
from studykb.utils.tokens import TokenCounter

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Return the configured LLM provider.

    ``LLM_PROVIDER`` picks one explicitly; otherwise the first provider with
    an API key wins (OpenAI, then Anthropic).
    """
    choice = app_settings.llm_provider.strip().lower()
    if choice == "openai" or (not choice and app_settings.openai_api_key):
        provider: ILLMProvider = OpenAILLMProvider(settings=app_settings)
    elif choice == "anthropic" or (not choice and app_settings.anthropic_api_key):
        provider = AnthropicLLMProvider(settings=app_settings)
    elif choice:
        raise ConfigurationError(f"Unknown LLM_PROVIDER: {app_settings.llm_provider!r}")
    else:
        raise ConfigurationError("No LLM provider configured (set OPENAI_API_KEY or ANTHROPIC_API_KEY)")

    if not provider.is_available():
        raise ConfigurationError(
            f"LLM provider {provider.get_provider_name()} has no API key",
            provider_name=provider.get_provider_name(),
        )
    return provider


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    provider = OpenAIEmbeddingProvider(settings=app_settings)
    if not provider.is_available():
        raise ConfigurationError(
            "Embeddings require OPENAI_API_KEY",
            provider_name=provider.get_provider_name(),
        )
    return provider


async def _build_stores(app_settings: Settings) -> tuple[IDocumentStore, IChunkStore]:
    backend = app_settings.storage_backend.strip().lower()
    if backend == "memory":
        return MemoryDocumentStore(), MemoryChunkStore()
    if backend == "sqlite":
        await initialize_schema(app_settings.sqlite_db_path)
        return (
            SQLiteDocumentStore(app_settings.sqlite_db_path),
            SQLiteChunkStore(app_settings.sqlite_db_path),
        )
    raise ConfigurationError(f"Unknown STORAGE_BACKEND: {app_settings.storage_backend!r}")


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


async def build_knowledge_base(
    custom_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
    blob_store: IBlobStore | None = None,
) -> KnowledgeBaseService:
    """Construct every provider and service and return the facade.

    Parameters
    ----------
    custom_settings:
        Settings to use instead of reading the environment.
    config_path:
        YAML file with OCR and pipeline tuning.
    blob_store:
        Blob store override; a filesystem store under ``BLOB_DIR`` otherwise.

    Raises
    ------
    ConfigurationError
        If no usable LLM or embedding provider is configured, or a setting
        names an unknown backend.
    """
    app_settings = custom_settings or Settings()
    config: dict[str, Any] = load_config(config_path, settings=app_settings)

    configure_logging(
        log_level=config.get("logging", {}).get("level", app_settings.log_level),
        json_output=(app_settings.app_env == "production"),
    )

    ocr_cfg = config.get("ocr", {})
    pipeline_cfg = config.get("pipeline", {})
    retrieval_cfg = config.get("retrieval", {})

    # -- Providers --
    llm = _build_llm_provider(app_settings)
    embedder = _build_embedding_provider(app_settings)
    ocr_languages = ocr_cfg.get("languages", app_settings.ocr_languages)
    ocr = TesseractOCRProvider(
        languages=ocr_languages,
        timeout_seconds=float(ocr_cfg.get("timeout_seconds", app_settings.ocr_timeout_seconds)),
        page_segmentation_mode=int(ocr_cfg.get("page_segmentation_mode", 3)),
        grayscale=bool(ocr_cfg.get("grayscale", True)),
        upscale_min_width=int(ocr_cfg.get("upscale_min_width", 1000)),
    )
    if not ocr.is_available():
        _logger.warning("ocr_unavailable", msg="tesseract binary not found; image OCR will fail")

    # -- Storage --
    documents, chunks = await _build_stores(app_settings)
    blobs = blob_store or FilesystemBlobStore(app_settings.blob_dir)

    # -- Ingestion --
    cache = MemoryCacheProvider(
        max_size=app_settings.chunking_cache_max_entries,
        ttl=app_settings.chunking_cache_ttl_seconds,
    )
    token_counter = TokenCounter(model=app_settings.openai_text_model or "gpt-4o-mini")
    chunker = SemanticChunker(
        llm=llm,
        cache=cache,
        token_counter=token_counter,
        min_tokens=app_settings.chunk_min_tokens,
        max_tokens=app_settings.chunk_max_tokens,
        target_tokens=app_settings.chunk_target_tokens,
    )
    batcher = EmbeddingBatcher(
        embedder,
        batch_size=int(pipeline_cfg.get("embedding_batch_size", app_settings.embedding_batch_size)),
    )
    extractor = TextExtractor(
        blob_store=blobs,
        ocr=ocr,
        ocr_languages=ocr_languages,
        ocr_embedded_images=bool(
            pipeline_cfg.get("pdf_ocr_embedded_images", app_settings.pdf_ocr_embedded_images)
        ),
        min_embedded_image_size=int(pipeline_cfg.get("min_embedded_image_size", 64)),
    )
    progress_tracker = ProgressTracker()
    pipeline = IngestionPipeline(
        document_store=documents,
        chunk_store=chunks,
        extractor=extractor,
        ocr=ocr,
        blob_store=blobs,
        chunker=chunker,
        batcher=batcher,
        language_detector=LanguageDetector(),
        progress_tracker=progress_tracker,
        ocr_languages=ocr_languages,
    )
    queue = IngestionQueue(
        pipeline.process_document,
        max_concurrent=int(pipeline_cfg.get("max_concurrent", app_settings.kb_max_concurrent)),
    )

    # -- Retrieval --
    try:
        mode = SearchMethod(str(retrieval_cfg.get("mode", app_settings.retrieval_mode)).lower())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown RETRIEVAL_MODE: {retrieval_cfg.get('mode')!r}") from exc
    limits = RetrievalLimits(
        top_documents=app_settings.retrieval_top_documents,
        max_chunks=app_settings.retrieval_max_chunks,
        max_chunks_selected=app_settings.retrieval_max_chunks_selected,
        min_chunk_chars=app_settings.retrieval_min_chunk_chars,
        max_chunk_chars=app_settings.retrieval_max_chunk_chars,
        max_keywords=app_settings.retrieval_max_keywords,
        similarity_threshold=app_settings.vector_similarity_threshold,
    )
    retrieval = RetrievalEngine(
        document_store=documents,
        chunk_store=chunks,
        llm=llm,
        embedder=embedder,
        mode=mode,
        limits=limits,
        temperature=app_settings.answer_temperature,
        max_tokens=app_settings.answer_max_tokens,
    )

    _logger.info(
        "knowledge_base_ready",
        llm=llm.get_provider_name(),
        embedding=embedder.get_provider_name(),
        storage=app_settings.storage_backend,
        retrieval_mode=mode.value,
        max_concurrent=queue.max_concurrent,
        tokenizer=token_counter.uses_tokenizer,
    )
    return KnowledgeBaseService(
        document_store=documents,
        chunk_store=chunks,
        blob_store=blobs,
        queue=queue,
        retrieval=retrieval,
        progress_tracker=progress_tracker,
    )
