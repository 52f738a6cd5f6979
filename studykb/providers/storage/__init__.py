"""Persistence adapters: document/chunk stores and blob stores.

    - MemoryDocumentStore / MemoryChunkStore -- process-local, used in tests
      and single-process deployments
    - SQLiteDocumentStore / SQLiteChunkStore -- aiosqlite-backed
    - FilesystemBlobStore / MemoryBlobStore  -- uploaded binaries
"""

from studykb.providers.storage.blob_store import FilesystemBlobStore, MemoryBlobStore
from studykb.providers.storage.memory_store import MemoryChunkStore, MemoryDocumentStore
from studykb.providers.storage.sqlite_store import SQLiteChunkStore, SQLiteDocumentStore

__all__ = [
    "FilesystemBlobStore",
    "MemoryBlobStore",
    "MemoryChunkStore",
    "MemoryDocumentStore",
    "SQLiteChunkStore",
    "SQLiteDocumentStore",
]
