"""Abstract contracts for every external collaborator of studykb.

Business logic depends only on these ABCs; concrete adapters live in
``studykb/providers/`` and are wired in ``studykb/main.py``.  Unit tests
inject in-memory fakes through the same seams.

    Interface            ->  Concrete implementations
    ---------------------------------------------------------------
    ILLMProvider         ->  OpenAILLMProvider, AnthropicLLMProvider
    IEmbeddingProvider   ->  OpenAIEmbeddingProvider
    IOCRProvider         ->  TesseractOCRProvider
    ICacheProvider       ->  MemoryCacheProvider
    IBlobStore           ->  FilesystemBlobStore, MemoryBlobStore
    IDocumentStore       ->  MemoryDocumentStore, SQLiteDocumentStore
    IChunkStore          ->  MemoryChunkStore, SQLiteChunkStore
"""

from studykb.interfaces.blob_store import IBlobStore
from studykb.interfaces.cache_provider import ICacheProvider
from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.interfaces.ocr_provider import IOCRProvider

__all__ = [
    "IBlobStore",
    "ICacheProvider",
    "IChunkStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IOCRProvider",
]
