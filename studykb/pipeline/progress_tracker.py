"""Document progress tracking with callback-based listener notification.

Keeps the latest :class:`ProcessingState` per document and broadcasts each
update to listeners registered for that document (e.g. a WebSocket push in
the HTTP layer).  Listeners are keyed by document id so concurrent
ingestions never cross-talk.

    IngestionPipeline --update()--> ProgressTracker --callback()--> listener(s)

Listener errors are caught and logged, so a broken listener can neither
block the pipeline nor starve other listeners.  Both sync and async
callbacks are supported.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from studykb.models.document import ProcessingState
from studykb.utils.logging import get_logger


class ProgressTracker:
    """Tracks and broadcasts per-document ingestion progress."""

    def __init__(self) -> None:
        self._statuses: dict[str, ProcessingState] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(self, document_id: str, state: ProcessingState) -> None:
        """Record *state* for *document_id* and notify its listeners."""
        self._statuses[document_id] = state
        self._logger.debug(
            "progress_update",
            document_id=document_id,
            status=state.status.value,
            step=state.current_step.value,
            progress=state.progress,
        )
        await self._notify_listeners(document_id, state)

    def register_listener(self, document_id: str, callback: Callable) -> None:
        """Register a callback receiving ``(document_id, state)`` updates.

        Parameters
        ----------
        document_id:
            The document to listen to.
        callback:
            An async or sync callable accepting ``(document_id, state)``.
        """
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, document_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(document_id, None)

    def get_status(self, document_id: str) -> ProcessingState | None:
        """Return the last state seen for *document_id*, if any."""
        return self._statuses.get(document_id)

    def forget(self, document_id: str) -> None:
        """Drop the cached state and listeners of *document_id*."""
        self._statuses.pop(document_id, None)
        self._listeners.pop(document_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, document_id: str, state: ProcessingState) -> None:
        for callback in list(self._listeners.get(document_id, [])):
            try:
                result = callback(document_id, state)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
