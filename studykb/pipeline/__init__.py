"""Ingestion orchestration primitives: status state machine, progress tracking, job queue."""

from studykb.pipeline.ingestion_queue import IngestionQueue
from studykb.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "IngestionQueue",
    "ProgressTracker",
]
