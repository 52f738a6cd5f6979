"""Processing-status state machine for documents.

Every status change goes through one of the transition functions below,
which check the move against an explicit table and return a new frozen
:class:`ProcessingState`.  An illegal move raises
:class:`InvalidStatusTransitionError` instead of silently overwriting.

    pending    -> processing | failed
    processing -> processing (step/progress change) | completed | failed
    completed  -> (terminal; only reset_for_reprocessing leaves it)
    failed     -> (terminal; only reset_for_reprocessing leaves it)
"""

from __future__ import annotations

from datetime import datetime, timezone

from studykb.models.document import ProcessingState, ProcessingStatus, ProcessingStep
from studykb.utils.errors import InvalidStatusTransitionError

_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING, ProcessingStatus.FAILED}),
    ProcessingStatus.PROCESSING: frozenset(
        {ProcessingStatus.PROCESSING, ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    return target in _TRANSITIONS[current]


def ensure_transition(current: ProcessingStatus, target: ProcessingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Cannot move processing status from {current.value} to {target.value}"
        )


def start(state: ProcessingState, progress: int, message: str = "") -> ProcessingState:
    """pending -> processing, entering the extracting step."""
    if state.status != ProcessingStatus.PENDING:
        raise InvalidStatusTransitionError(
            f"Cannot start processing from {state.status.value}; reset the document first"
        )
    ensure_transition(state.status, ProcessingStatus.PROCESSING)
    return ProcessingState(
        status=ProcessingStatus.PROCESSING,
        progress=progress,
        current_step=ProcessingStep.EXTRACTING,
        message=message,
        error=None,
        started_at=_now(),
        completed_at=None,
    )


def advance(
    state: ProcessingState,
    step: ProcessingStep,
    progress: int,
    message: str | None = None,
) -> ProcessingState:
    """processing -> processing with a new step and progress.

    Progress never moves backwards; ``message=None`` keeps the previous one.
    """
    ensure_transition(state.status, ProcessingStatus.PROCESSING)
    if step in (ProcessingStep.COMPLETED, ProcessingStep.FAILED):
        raise InvalidStatusTransitionError(f"Step {step.value} is reserved for terminal states")
    return state.model_copy(
        update={
            "current_step": step,
            "progress": max(state.progress, min(100, progress)),
            "message": state.message if message is None else message,
        }
    )


def complete(state: ProcessingState, message: str = "Processing completed") -> ProcessingState:
    """processing -> completed at 100%."""
    ensure_transition(state.status, ProcessingStatus.COMPLETED)
    return state.model_copy(
        update={
            "status": ProcessingStatus.COMPLETED,
            "progress": 100,
            "current_step": ProcessingStep.COMPLETED,
            "message": message,
            "error": None,
            "completed_at": _now(),
        }
    )


def fail(state: ProcessingState, error: str, message: str = "Processing failed") -> ProcessingState:
    """pending/processing -> failed; progress stays where it stopped."""
    ensure_transition(state.status, ProcessingStatus.FAILED)
    return state.model_copy(
        update={
            "status": ProcessingStatus.FAILED,
            "current_step": ProcessingStep.FAILED,
            "message": message,
            "error": error,
            "completed_at": _now(),
        }
    )


def reset_for_reprocessing(state: ProcessingState) -> ProcessingState:
    """completed/failed (or still pending) -> a fresh pending state.

    The only way out of a terminal status.  A document that is currently
    processing cannot be reset.
    """
    if state.status == ProcessingStatus.PROCESSING:
        raise InvalidStatusTransitionError("Cannot reset a document while it is processing")
    return ProcessingState(
        status=ProcessingStatus.PENDING,
        progress=0,
        current_step=ProcessingStep.UPLOADING,
        message="Queued for reprocessing",
    )
