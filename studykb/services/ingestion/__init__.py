"""Document ingestion services.

    TextExtractor      -- stored binary -> per-page text (source_processors/)
    LanguageDetector   -- zh / en / mixed / none heuristic
    SemanticChunker    -- AI chunking with hash-keyed cache and fallback
    EmbeddingBatcher   -- batched, order-preserving embedding
    IngestionPipeline  -- runs one document through all of the above
"""

from studykb.services.ingestion.embedding_batcher import EmbeddingBatcher
from studykb.services.ingestion.ingestion_pipeline import IngestionPipeline
from studykb.services.ingestion.language_detector import LanguageDetector, detect_language
from studykb.services.ingestion.semantic_chunker import SemanticChunker
from studykb.services.ingestion.text_extractor import TextExtractor

__all__ = [
    "EmbeddingBatcher",
    "IngestionPipeline",
    "LanguageDetector",
    "SemanticChunker",
    "TextExtractor",
    "detect_language",
]
