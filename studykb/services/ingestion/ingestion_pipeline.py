"""Per-document ingestion: extract -> OCR -> chunk -> embed -> persist.

# ─── STEP / PROGRESS MAP ───────────────────────────────────────────────
#
#   step         progress   action
#   extracting   10         TextExtractor.extract (fatal on ExtractionError)
#   ocr          60 -> 80   OCR every image flagged needs_ocr (per-image
#                           failures are isolated: empty text, confidence 0)
#   chunking     82         corpus assembled; word count + language saved
#                           immediately; SemanticChunker.chunk
#   embedding    86         EmbeddingBatcher.embed_all (all-or-nothing)
#   saving       90         chunks replace any previous set atomically
#   completed    100        raw text dropped, compact summary stored
#
# Any exception in any step moves the document to ``failed`` with
# "<ExceptionClass>: <message>" recorded and progress frozen; chunks left
# from this or an earlier run are removed.  Nothing is raised to the
# caller, so one bad document can never take down the queue.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from studykb.interfaces.blob_store import IBlobStore
from studykb.interfaces.document_store import IChunkStore, IDocumentStore
from studykb.interfaces.ocr_provider import IOCRProvider
from studykb.models.chunk import ChunkProposal, KnowledgeChunk
from studykb.models.document import (
    Document,
    ExtractedContentSummary,
    ProcessingState,
    ProcessingStep,
)
from studykb.models.extraction import ExtractedDocument, ExtractedPage, PageImage
from studykb.pipeline import status_machine
from studykb.pipeline.progress_tracker import ProgressTracker
from studykb.services.ingestion.embedding_batcher import EmbeddingBatcher
from studykb.services.ingestion.language_detector import LanguageDetector
from studykb.services.ingestion.semantic_chunker import SemanticChunker
from studykb.services.ingestion.text_extractor import TextExtractor
from studykb.utils.errors import (
    InvalidStatusTransitionError,
    KnowledgeBaseError,
    PersistenceError,
)

logger = structlog.get_logger(logger_name=__name__)

PROGRESS_EXTRACTING = 10
PROGRESS_OCR_START = 60
PROGRESS_OCR_SPAN = 20
PROGRESS_CHUNKING = 82
PROGRESS_EMBEDDING = 86
PROGRESS_SAVING = 90

# Characters of a chunk's opening used to find its source page.
_PAGE_PROBE_CHARS = 60
_WHITESPACE = re.compile(r"\s+")


def format_error(exc: BaseException) -> str:
    """Return ``"<ExceptionClass>: <message>"`` for the processing record."""
    message = exc.message if isinstance(exc, KnowledgeBaseError) else str(exc)
    return f"{type(exc).__name__}: {message}"


def _normalise(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()


@dataclass
class _Run:
    """Mutable bookkeeping for one ingestion attempt."""

    document_id: str
    state: ProcessingState


class IngestionPipeline:
    """Runs one document through the full ingestion sequence.

    Parameters
    ----------
    document_store, chunk_store:
        Persistence for status/metadata and for the produced chunks.
    extractor:
        Format dispatcher producing per-page text.
    ocr:
        OCR engine for embedded images flagged ``needs_ocr``.
    blob_store:
        Fallback source of embedded-image bytes when a page image carries
        only a reference.
    chunker, batcher:
        Semantic chunker and embedding batcher.
    progress_tracker:
        Optional broadcaster for status updates.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        chunk_store: IChunkStore,
        extractor: TextExtractor,
        ocr: IOCRProvider,
        blob_store: IBlobStore,
        chunker: SemanticChunker,
        batcher: EmbeddingBatcher,
        language_detector: LanguageDetector | None = None,
        progress_tracker: ProgressTracker | None = None,
        ocr_languages: str = "chi_sim+eng",
    ) -> None:
        self._documents = document_store
        self._chunks = chunk_store
        self._extractor = extractor
        self._ocr = ocr
        self._blob_store = blob_store
        self._chunker = chunker
        self._batcher = batcher
        self._language = language_detector or LanguageDetector()
        self._progress = progress_tracker
        self._ocr_languages = ocr_languages

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_document(self, document_id: str) -> Document | None:
        """Ingest *document_id*; never raises.

        Returns the final document record, or ``None`` if the document does
        not exist (or was deleted) or its failure could not be recorded.
        """
        log = logger.bind(document_id=document_id)
        try:
            document = await self._documents.get(document_id)
        except Exception as exc:
            log.error("ingestion_lookup_failed", error=format_error(exc))
            return None
        if document is None or not document.is_active:
            log.warning("ingestion_document_missing")
            return None

        try:
            state = status_machine.start(
                document.processing, PROGRESS_EXTRACTING, "Extracting text from document..."
            )
        except InvalidStatusTransitionError as exc:
            log.warning("ingestion_skipped", status=document.processing.status.value, reason=exc.message)
            return document

        run = _Run(document_id=document_id, state=state)
        log.info("ingestion_started", doc_type=document.doc_type.value, title=document.title)
        try:
            document = await self._write_state(run, state)
            return await self._run_steps(run, document, log)
        except Exception as exc:
            return await self._record_failure(run, exc, log)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _run_steps(self, run: _Run, document: Document, log: structlog.BoundLogger) -> Document:
        # 1. extraction
        extracted = await self._extractor.extract(document)
        await self._advance(run, ProcessingStep.OCR, PROGRESS_OCR_START, "Processing images with OCR...")

        # 2. OCR fill-in
        extracted = await self._fill_ocr(run, extracted, log)

        # 3. corpus statistics, persisted before anything else can fail
        corpus = self.assemble_corpus(extracted)
        word_count = self._language.count_words(corpus)
        language = self._language.detect(corpus)
        page_count = extracted.metadata.page_count or len(extracted.pages)
        metadata = document.metadata.model_copy(
            update={
                "page_count": page_count,
                "author": extracted.metadata.author or document.metadata.author,
                "created_at": extracted.metadata.created_at or document.metadata.created_at,
                "modified_at": extracted.metadata.modified_at or document.metadata.modified_at,
                "word_count": word_count,
                "language": language,
            }
        )
        chunking = status_machine.advance(
            run.state, ProcessingStep.CHUNKING, PROGRESS_CHUNKING, "Splitting content into chunks..."
        )
        await self._write_state(run, chunking, metadata=metadata)

        # 4. chunking (degrades internally, never fails for AI reasons)
        proposals = await self._chunker.chunk(corpus)

        # 5. embedding
        await self._advance(run, ProcessingStep.EMBEDDING, PROGRESS_EMBEDDING, "Generating embeddings...")
        vectors = await self._batcher.embed_all([p.content for p in proposals])

        # 6. atomic persistence
        await self._advance(run, ProcessingStep.SAVING, PROGRESS_SAVING, "Saving extracted content...")
        chunks = self._build_chunks(run.document_id, proposals, vectors, extracted.pages)
        try:
            await self._chunks.replace_for_document(run.document_id, chunks)
        except KnowledgeBaseError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Chunk batch insert failed: {exc}") from exc

        # 7 + 8. compact summary and completion
        total_tokens = sum(c.token_count for c in chunks)
        summary = ExtractedContentSummary(
            page_count=page_count,
            total_chunks=len(chunks),
            avg_tokens_per_chunk=round(total_tokens / len(chunks)) if chunks else 0,
            word_count=word_count,
            language=language,
        )
        message = "Processing completed" if chunks else "Processing completed (no text content found)"
        completed = status_machine.complete(run.state, message)
        document = await self._write_state(run, completed, extracted_content=summary)

        log.info(
            "ingestion_completed",
            chunks=len(chunks),
            words=word_count,
            language=language.value,
            avg_tokens=summary.avg_tokens_per_chunk,
        )
        return document

    async def _fill_ocr(
        self, run: _Run, extracted: ExtractedDocument, log: structlog.BoundLogger
    ) -> ExtractedDocument:
        pages = list(extracted.pages)
        total = len(pages)
        for index, page in enumerate(pages):
            if not page.images:
                continue
            if any(image.needs_ocr for image in page.images):
                images = [await self._ocr_image(image, page.page_number, log) for image in page.images]
                pages[index] = page.model_copy(update={"images": images})
            progress = PROGRESS_OCR_START + round((index + 1) / total * PROGRESS_OCR_SPAN)
            await self._advance(run, ProcessingStep.OCR, progress)
        return extracted.model_copy(update={"pages": pages})

    async def _ocr_image(self, image: PageImage, page_number: int, log: structlog.BoundLogger) -> PageImage:
        if not image.needs_ocr:
            return image
        try:
            data = image.data if image.data is not None else await self._blob_store.read(image.ref)
            result = await self._ocr.recognize(data, self._ocr_languages)
        except Exception as exc:
            log.warning("ocr_image_failed", page=page_number, ref=image.ref, error=format_error(exc))
            return image.model_copy(update={"ocr_text": "", "confidence": 0.0, "needs_ocr": False})
        return image.model_copy(
            update={
                "ocr_text": result.text.strip(),
                "confidence": result.confidence,
                "needs_ocr": False,
            }
        )

    # ------------------------------------------------------------------
    # Corpus and chunk assembly
    # ------------------------------------------------------------------

    @staticmethod
    def assemble_corpus(extracted: ExtractedDocument) -> str:
        """Join page texts (or the full text) with OCR texts into one corpus.

        OCR text already contained in the page text (an image upload's own
        transcription) is not repeated.
        """
        parts = [p.text.strip() for p in extracted.pages if p.text.strip()]
        if not parts and extracted.full_text.strip():
            parts = [extracted.full_text.strip()]

        seen = _normalise("\n".join(parts))
        for image in extracted.images:
            ocr_text = image.ocr_text.strip()
            if ocr_text and _normalise(ocr_text) not in seen:
                parts.append(ocr_text)
                seen = f"{seen} {_normalise(ocr_text)}"
        return "\n\n".join(parts)

    def _build_chunks(
        self,
        document_id: str,
        proposals: list[ChunkProposal],
        vectors: list[list[float]],
        pages: list[ExtractedPage],
    ) -> list[KnowledgeChunk]:
        if len(vectors) != len(proposals):
            raise PersistenceError(
                f"Got {len(vectors)} embeddings for {len(proposals)} chunks"
            )
        page_texts = [
            (page.page_number, _normalise(" ".join([page.text, *(i.ocr_text for i in page.images)])))
            for page in pages
        ]
        counter = self._chunker.token_counter
        chunks: list[KnowledgeChunk] = []
        cursor = 0
        for index, (proposal, vector) in enumerate(zip(proposals, vectors)):
            page_number, cursor = self._locate_page(proposal.content, page_texts, cursor)
            chunks.append(
                KnowledgeChunk(
                    document_id=document_id,
                    content=proposal.content,
                    embedding=vector,
                    summary=proposal.summary,
                    page_number=page_number,
                    chunk_index=index,
                    token_count=counter.count(proposal.content),
                    char_count=len(proposal.content),
                    chunk_type=proposal.chunk_type,
                    semantic_score=proposal.semantic_score,
                )
            )
        return chunks

    @staticmethod
    def _locate_page(
        content: str, page_texts: list[tuple[int, str]], cursor: int
    ) -> tuple[int | None, int]:
        """Return the first page containing the chunk's opening text.

        Search starts at the page of the previous chunk (*cursor*) so that
        repeated headings resolve in reading order, then wraps to the start.
        """
        probe = _normalise(content)[:_PAGE_PROBE_CHARS]
        if not probe:
            return None, cursor
        order = list(range(cursor, len(page_texts))) + list(range(0, cursor))
        for position in order:
            page_number, text = page_texts[position]
            if probe in text:
                return page_number, position
        return None, cursor

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    async def _advance(
        self, run: _Run, step: ProcessingStep, progress: int, message: str | None = None
    ) -> Document:
        return await self._write_state(run, status_machine.advance(run.state, step, progress, message))

    async def _write_state(self, run: _Run, state: ProcessingState, **fields: object) -> Document:
        document = await self._documents.update(run.document_id, {"processing": state, **fields})
        run.state = state
        if self._progress is not None:
            await self._progress.update(run.document_id, state)
        return document

    async def _record_failure(
        self, run: _Run, exc: Exception, log: structlog.BoundLogger
    ) -> Document | None:
        error = format_error(exc)
        log.error(
            "ingestion_failed",
            step=run.state.current_step.value,
            progress=run.state.progress,
            error=error,
        )
        # A failed document owns no chunks, including those of an earlier run.
        try:
            removed = await self._chunks.delete_by_document(run.document_id)
        except Exception as cleanup_exc:
            log.error("ingestion_chunk_cleanup_failed", error=format_error(cleanup_exc))
        else:
            if removed:
                log.info("ingestion_chunks_discarded", chunks=removed)
        try:
            failed = status_machine.fail(run.state, error, message="Processing failed")
            return await self._write_state(run, failed)
        except Exception as record_exc:
            log.error("ingestion_failure_not_recorded", error=format_error(record_exc))
            return None
