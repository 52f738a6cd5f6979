"""Blob stores for uploaded binaries, keyed by document id."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

import structlog

from studykb.interfaces.blob_store import IBlobStore
from studykb.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]")


class FilesystemBlobStore(IBlobStore):
    """Stores each blob as one file under *root*.

    Keys are sanitised into file names so a key can never escape the root.
    File I/O runs in a worker thread.
    """

    def __init__(self, root: str | Path = "data/uploads") -> None:
        self._root = Path(root)

    def _path_for(self, key: str) -> Path:
        name = _SAFE_KEY.sub("_", key)
        if not name or name in {".", ".."}:
            raise StorageError(f"Invalid blob key: {key!r}", provider_name="filesystem")
        return self._root / name

    async def put(self, key: str, data: bytes) -> str:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StorageError(f"Failed to write blob {key}: {exc}", provider_name="filesystem") from exc
        logger.debug("blob_stored", key=key, path=str(path), bytes=len(data))
        return key

    async def read(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise StorageError(f"Blob not found: {key}", provider_name="filesystem") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read blob {key}: {exc}", provider_name="filesystem") from exc

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(f"Failed to delete blob {key}: {exc}", provider_name="filesystem") from exc
        logger.debug("blob_deleted", key=key)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class MemoryBlobStore(IBlobStore):
    """Dict-backed blob store."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes) -> str:
        self._blobs[key] = data
        return key

    async def read(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError as exc:
            raise StorageError(f"Blob not found: {key}", provider_name="memory") from exc

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._blobs
