"""Unit tests for MemoryCacheProvider, ProgressTracker and the status machine."""

from __future__ import annotations

import pytest

from studykb.models.document import ProcessingState, ProcessingStatus, ProcessingStep
from studykb.pipeline import status_machine
from studykb.pipeline.progress_tracker import ProgressTracker
from studykb.providers.cache.memory_cache import MemoryCacheProvider
from studykb.utils.errors import InvalidStatusTransitionError, PipelineError


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        assert await cache.get("key1") == "value1"

    @pytest.mark.asyncio
    async def test_set_overwrites_existing(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "old")
        await cache.set("key1", "new")
        assert await cache.get("key1") == "new"

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_exists(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        assert await cache.exists("key1") is True
        assert await cache.exists("missing") is False

    @pytest.mark.asyncio
    async def test_evicts_beyond_max_size(self) -> None:
        cache = MemoryCacheProvider(max_size=2, ttl=3600)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        assert len(cache) == 2
        assert await cache.get("c") == 3

    @pytest.mark.asyncio
    async def test_stores_tuples_of_models(self, cache: MemoryCacheProvider) -> None:
        from studykb.models.chunk import ChunkProposal

        value = (ChunkProposal(content="Entropy rises."),)
        await cache.set("semantic_chunks:abc", value)
        assert await cache.get("semantic_chunks:abc") == value


# ======================================================================
# ProgressTracker
# ======================================================================


def _state(step: ProcessingStep, progress: int) -> ProcessingState:
    return ProcessingState(status=ProcessingStatus.PROCESSING, current_step=step, progress=progress)


class TestProgressTracker:
    @pytest.fixture()
    def tracker(self) -> ProgressTracker:
        return ProgressTracker()

    @pytest.mark.asyncio
    async def test_update_stores_status(self, tracker: ProgressTracker) -> None:
        await tracker.update("d1", _state(ProcessingStep.OCR, 60))
        status = tracker.get_status("d1")
        assert status is not None
        assert status.current_step == ProcessingStep.OCR
        assert status.progress == 60

    def test_unknown_document_has_no_status(self, tracker: ProgressTracker) -> None:
        assert tracker.get_status("missing") is None

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_notified(self, tracker: ProgressTracker) -> None:
        seen_sync: list[int] = []
        seen_async: list[int] = []

        def on_sync(_document_id: str, state: ProcessingState) -> None:
            seen_sync.append(state.progress)

        async def on_async(_document_id: str, state: ProcessingState) -> None:
            seen_async.append(state.progress)

        tracker.register_listener("d1", on_sync)
        tracker.register_listener("d1", on_async)
        await tracker.update("d1", _state(ProcessingStep.EXTRACTING, 10))
        await tracker.update("d1", _state(ProcessingStep.CHUNKING, 82))

        assert seen_sync == [10, 82]
        assert seen_async == [10, 82]

    @pytest.mark.asyncio
    async def test_listeners_are_per_document(self, tracker: ProgressTracker) -> None:
        seen: list[str] = []
        tracker.register_listener("d1", lambda doc_id, _state: seen.append(doc_id))

        await tracker.update("d2", _state(ProcessingStep.EXTRACTING, 10))

        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, tracker: ProgressTracker) -> None:
        seen: list[int] = []

        def broken(_document_id: str, _state: ProcessingState) -> None:
            raise RuntimeError("socket closed")

        tracker.register_listener("d1", broken)
        tracker.register_listener("d1", lambda _id, state: seen.append(state.progress))

        await tracker.update("d1", _state(ProcessingStep.SAVING, 90))

        assert seen == [90]

    @pytest.mark.asyncio
    async def test_duplicate_listener_registered_once(self, tracker: ProgressTracker) -> None:
        seen: list[int] = []

        def listener(_id: str, state: ProcessingState) -> None:
            seen.append(state.progress)

        tracker.register_listener("d1", listener)
        tracker.register_listener("d1", listener)
        await tracker.update("d1", _state(ProcessingStep.EMBEDDING, 86))

        assert seen == [86]

    @pytest.mark.asyncio
    async def test_unregister_and_forget(self, tracker: ProgressTracker) -> None:
        seen: list[int] = []

        def listener(_id: str, state: ProcessingState) -> None:
            seen.append(state.progress)

        tracker.register_listener("d1", listener)
        tracker.unregister_listener("d1", listener)
        await tracker.update("d1", _state(ProcessingStep.EXTRACTING, 10))
        assert seen == []

        tracker.forget("d1")
        assert tracker.get_status("d1") is None


# ======================================================================
# Status machine
# ======================================================================


class TestStatusMachine:
    def test_start_moves_pending_to_extracting(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10, message="Extracting text")

        assert state.status == ProcessingStatus.PROCESSING
        assert state.current_step == ProcessingStep.EXTRACTING
        assert state.progress == 10
        assert state.started_at is not None
        assert state.error is None

    @pytest.mark.parametrize("status", [ProcessingStatus.COMPLETED, ProcessingStatus.FAILED])
    def test_terminal_states_cannot_restart(self, status: ProcessingStatus) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.start(ProcessingState(status=status), progress=10)

    def test_invalid_transition_is_a_pipeline_error(self) -> None:
        assert issubclass(InvalidStatusTransitionError, PipelineError)

    def test_advance_never_moves_progress_backwards(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10)
        state = status_machine.advance(state, ProcessingStep.CHUNKING, 82)
        state = status_machine.advance(state, ProcessingStep.EMBEDDING, 50, message="Embedding")

        assert state.progress == 82
        assert state.current_step == ProcessingStep.EMBEDDING
        assert state.message == "Embedding"

    def test_advance_keeps_message_when_none(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10, message="Extracting text")
        state = status_machine.advance(state, ProcessingStep.OCR, 60)
        assert state.message == "Extracting text"

    def test_advance_rejects_terminal_steps(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10)
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.advance(state, ProcessingStep.COMPLETED, 100)

    def test_advance_requires_processing(self) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.advance(
                ProcessingState(status=ProcessingStatus.COMPLETED), ProcessingStep.OCR, 60
            )

    def test_complete_sets_100(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10)
        state = status_machine.complete(state)

        assert state.status == ProcessingStatus.COMPLETED
        assert state.progress == 100
        assert state.current_step == ProcessingStep.COMPLETED
        assert state.completed_at is not None

    def test_complete_from_pending_is_rejected(self) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.complete(ProcessingState())

    def test_fail_keeps_progress(self) -> None:
        state = status_machine.start(ProcessingState(), progress=10)
        state = status_machine.advance(state, ProcessingStep.EMBEDDING, 86)
        state = status_machine.fail(state, "EmbeddingBatchError: quota exceeded")

        assert state.status == ProcessingStatus.FAILED
        assert state.current_step == ProcessingStep.FAILED
        assert state.progress == 86
        assert state.error == "EmbeddingBatchError: quota exceeded"

    def test_failed_cannot_fail_again(self) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.fail(ProcessingState(status=ProcessingStatus.FAILED), "again")

    @pytest.mark.parametrize(
        "status",
        [ProcessingStatus.PENDING, ProcessingStatus.COMPLETED, ProcessingStatus.FAILED],
    )
    def test_reset_returns_fresh_pending_state(self, status: ProcessingStatus) -> None:
        state = status_machine.reset_for_reprocessing(
            ProcessingState(status=status, progress=86, error="x")
        )
        assert state.status == ProcessingStatus.PENDING
        assert state.progress == 0
        assert state.error is None
        assert state.current_step == ProcessingStep.UPLOADING

    def test_reset_rejected_while_processing(self) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            status_machine.reset_for_reprocessing(
                ProcessingState(status=ProcessingStatus.PROCESSING)
            )

    def test_can_transition_table(self) -> None:
        assert status_machine.can_transition(ProcessingStatus.PENDING, ProcessingStatus.FAILED)
        assert not status_machine.can_transition(ProcessingStatus.PENDING, ProcessingStatus.COMPLETED)
        assert not status_machine.can_transition(ProcessingStatus.COMPLETED, ProcessingStatus.PROCESSING)
