"""Bounded-concurrency FIFO job queue for document ingestion.

A fixed pool of ``max_concurrent`` worker tasks consumes document ids
from an ``asyncio.Queue``.  Each worker handles one document at a time and
always returns for the next id once the handler finishes, whatever the
outcome, so a failing document can never starve the queue.

Workers are started lazily on the first :meth:`IngestionQueue.enqueue`,
which therefore needs a running event loop.  All bookkeeping (pending and
active sets) is mutated only from the event-loop thread between awaits,
so no two workers can claim the same id.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(logger_name=__name__)

DocumentHandler = Callable[[str], Awaitable[Any]]


class IngestionQueue:
    """FIFO admission of documents to the ingestion pipeline.

    Parameters
    ----------
    handler:
        Coroutine function processing one document id (normally
        ``IngestionPipeline.process_document``).
    max_concurrent:
        Number of documents processed simultaneously (``KB_MAX_CONCURRENT``).
    """

    def __init__(self, handler: DocumentHandler, max_concurrent: int = 2) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._handler = handler
        self._max_concurrent = max_concurrent
        self._queue: asyncio.Queue[str] | None = None
        self._workers: list[asyncio.Task] = []
        self._pending: set[str] = set()
        self._active: set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def is_queued(self, document_id: str) -> bool:
        """Return ``True`` if *document_id* is waiting or being processed."""
        return document_id in self._pending or document_id in self._active

    def enqueue(self, document_id: str) -> bool:
        """Append *document_id* to the queue (fire-and-forget).

        Returns ``False`` when the id is already pending or active.

        Raises
        ------
        RuntimeError
            If called outside a running event loop.
        """
        queue = self._ensure_workers()
        if self.is_queued(document_id):
            logger.debug("ingestion_enqueue_duplicate", document_id=document_id)
            return False
        self._pending.add(document_id)
        queue.put_nowait(document_id)
        logger.info(
            "ingestion_enqueued",
            document_id=document_id,
            pending=self.pending_count,
            active=self.active_count,
        )
        return True

    async def join(self) -> None:
        """Wait until every enqueued document has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers.  Documents still pending are dropped."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if self._pending:
            logger.warning("ingestion_queue_stopped_with_pending", pending=sorted(self._pending))
        self._pending.clear()
        self._active.clear()
        self._queue = None

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _ensure_workers(self) -> asyncio.Queue[str]:
        asyncio.get_running_loop()
        queue = self._queue
        if queue is None:
            queue = self._queue = asyncio.Queue()
        if not self._workers:
            self._workers = [
                asyncio.create_task(self._worker(n, queue), name=f"ingestion-worker-{n}")
                for n in range(self._max_concurrent)
            ]
        return queue

    async def _worker(self, worker_no: int, queue: asyncio.Queue[str]) -> None:
        while True:
            document_id = await queue.get()
            self._pending.discard(document_id)
            self._active.add(document_id)
            try:
                await self._handler(document_id)
            except Exception as exc:
                logger.error(
                    "ingestion_queue_item_failed",
                    document_id=document_id,
                    worker=worker_no,
                    error=f"{type(exc).__name__}: {exc}",
                )
            finally:
                self._active.discard(document_id)
                queue.task_done()
