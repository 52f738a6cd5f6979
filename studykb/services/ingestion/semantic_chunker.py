"""AI-driven semantic chunking with a content-hash cache and a deterministic fallback.

Primary path: one completion call asks the model to partition the whole
corpus into coherent chunks of ``min_tokens``..``max_tokens`` (aiming for
``target_tokens``), returned as JSON ``{"chunks": [{"content", "summary"}]}``.
Any failure of that call, or any response that does not parse into a
non-empty list of chunks, switches to the fallback splitter.  The AI call
is never retried.

Fallback path: a paragraph-greedy packer.  Paragraphs (blank-line
delimited) are accumulated and the running chunk is flushed whenever the
next paragraph would push it past ``target_tokens * 1.2``.  A paragraph
that alone exceeds that limit is split at sentence boundaries with an
abbreviation-aware splitter.

Caching: results of the primary path are memoised under the SHA-256 of
the exact input text.  Fallback output is never cached, so a later
successful AI call on the same text can still populate the entry.
"""

from __future__ import annotations

import json
import re

import structlog

from studykb.interfaces.cache_provider import ICacheProvider
from studykb.interfaces.llm_provider import ILLMProvider
from studykb.models.chunk import (
    AI_CHUNK_SCORE,
    FALLBACK_CHUNK_SCORE,
    ChunkProposal,
    ChunkType,
)
from studykb.utils.errors import ChunkingDegradation, LLMError
from studykb.utils.hashing import namespaced_key
from studykb.utils.tokens import TokenCounter

logger = structlog.get_logger(logger_name=__name__)

_CACHE_NAMESPACE = "semantic_chunks"
_FALLBACK_SLACK = 1.2

# Periods after these never end a sentence ("Dr. Smith", "e.g. this").
_ABBREVIATIONS = frozenset(
    {
        "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Fig", "fig",
        "Eq", "eq", "Vol", "No", "vs", "etc", "approx", "al", "e.g", "i.e",
        "cf", "Ch", "ch", "Sec", "sec", "pp",
    }
)

_SENTENCE_END = re.compile(r"[.!?](?:\s|$)|[。！？]")

_SYSTEM_PROMPT = """\
You split study material into retrieval chunks.

Rules:
- Each chunk must be between {min_tokens} and {max_tokens} tokens; aim for {target_tokens}.
- Keep each chunk semantically coherent: one topic, concept or worked example.
- Never split in the middle of a sentence.
- Never split inside a heading and its first paragraph, a list, a table, a formula or a code block.
- Copy the source text verbatim into "content"; do not paraphrase, translate or drop text.
- Cover the whole input in reading order.
- "summary" is one short sentence describing the chunk, in the language of the chunk.

Return JSON only, in exactly this shape:
{{"chunks": [{{"content": "...", "summary": "..."}}]}}"""

_USER_PROMPT = "Split the following text into chunks.\n\n<text>\n{text}\n</text>"


class SemanticChunker:
    """Splits a document corpus into token-bounded chunks.

    Parameters
    ----------
    llm:
        Completion provider for the primary path.  ``None`` means every
        call uses the fallback splitter.
    cache:
        Chunking cache keyed by content hash.
    token_counter:
        Shared token counter (tiktoken with ``ceil(len/4)`` fallback).
    min_tokens, max_tokens, target_tokens:
        Default chunk sizing; each call may override them.
    """

    def __init__(
        self,
        llm: ILLMProvider | None,
        cache: ICacheProvider,
        token_counter: TokenCounter | None = None,
        min_tokens: int = 300,
        max_tokens: int = 600,
        target_tokens: int = 450,
    ) -> None:
        self._llm = llm
        self._cache = cache
        self._tokens = token_counter or TokenCounter()
        self._min_tokens = min_tokens
        self._max_tokens = max_tokens
        self._target_tokens = target_tokens

    @property
    def token_counter(self) -> TokenCounter:
        return self._tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chunk(
        self,
        text: str,
        min_tokens: int | None = None,
        max_tokens: int | None = None,
        target_tokens: int | None = None,
    ) -> list[ChunkProposal]:
        """Return chunk proposals covering *text* in reading order.

        Never raises for AI failures; those degrade to :meth:`fallback_chunk`.
        Empty or whitespace-only input yields an empty list.
        """
        if not text or not text.strip():
            return []

        min_tokens = min_tokens or self._min_tokens
        max_tokens = max_tokens or self._max_tokens
        target_tokens = target_tokens or self._target_tokens

        key = namespaced_key(_CACHE_NAMESPACE, text)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.info("chunking_cache_hit", chunks=len(cached))
            return list(cached)

        try:
            proposals = await self._chunk_with_llm(text, min_tokens, max_tokens, target_tokens)
        except ChunkingDegradation as exc:
            logger.warning("chunking_fallback", reason=exc.message, provider=exc.provider_name)
            return self.fallback_chunk(text, target_tokens)

        await self._cache.set(key, tuple(proposals))
        logger.info(
            "chunking_complete",
            method="semantic",
            chunks=len(proposals),
            input_tokens=self._tokens.count(text),
        )
        return proposals

    def fallback_chunk(self, text: str, target_tokens: int | None = None) -> list[ChunkProposal]:
        """Deterministic paragraph-greedy split of *text* (no summaries)."""
        limit = (target_tokens or self._target_tokens) * _FALLBACK_SLACK
        pieces = self._pack_paragraphs(self._split_paragraphs(text), limit)
        proposals = [
            ChunkProposal(
                content=piece,
                summary=None,
                chunk_type=ChunkType.PARAGRAPH,
                semantic_score=FALLBACK_CHUNK_SCORE,
            )
            for piece in pieces
        ]
        logger.info("chunking_complete", method="fallback", chunks=len(proposals))
        return proposals

    # ------------------------------------------------------------------
    # Primary path
    # ------------------------------------------------------------------

    async def _chunk_with_llm(
        self, text: str, min_tokens: int, max_tokens: int, target_tokens: int
    ) -> list[ChunkProposal]:
        if self._llm is None:
            raise ChunkingDegradation("No LLM provider configured")

        # Output repeats the input verbatim plus summaries.
        output_budget = min(16000, max(2000, int(self._tokens.count(text) * 1.5)))
        try:
            completion = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT.format(
                    min_tokens=min_tokens, max_tokens=max_tokens, target_tokens=target_tokens
                ),
                user_prompt=_USER_PROMPT.format(text=text),
                temperature=0.2,
                max_tokens=output_budget,
                json_mode=True,
            )
        except LLMError as exc:
            raise ChunkingDegradation(
                f"Chunking call failed: {exc.message}", provider_name=exc.provider_name
            ) from exc
        except Exception as exc:
            raise ChunkingDegradation(
                f"Chunking call failed: {type(exc).__name__}: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        return self._parse_response(completion.content)

    @staticmethod
    def _parse_response(response: str) -> list[ChunkProposal]:
        """Parse ``{"chunks": [...]}`` (or a bare array) into proposals.

        Raises
        ------
        ChunkingDegradation
            On invalid JSON, a wrong shape, or zero usable chunks.
        """
        cleaned = response.strip()
        fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
        if fence_match:
            cleaned = fence_match.group(1).strip()

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            logger.warning("json_parse_failed", response_preview=response[:200])
            raise ChunkingDegradation(f"Chunker returned invalid JSON: {exc.msg}") from exc

        items = data.get("chunks") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ChunkingDegradation("Chunker response has no chunk list")

        proposals: list[ChunkProposal] = []
        for item in items:
            if not isinstance(item, dict):
                raise ChunkingDegradation("Chunk entry is not an object")
            content = item.get("content")
            if not isinstance(content, str):
                raise ChunkingDegradation("Chunk entry has no text content")
            if not content.strip():
                continue
            summary = item.get("summary")
            proposals.append(
                ChunkProposal(
                    content=content.strip(),
                    summary=summary.strip() if isinstance(summary, str) and summary.strip() else None,
                    chunk_type=ChunkType.SEMANTIC,
                    semantic_score=AI_CHUNK_SCORE,
                )
            )

        if not proposals:
            raise ChunkingDegradation("Chunker returned no chunks")
        return proposals

    # ------------------------------------------------------------------
    # Fallback path
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = re.split(r"\n\s*\n", text)
        return [p.strip() for p in parts if p.strip()]

    def _pack_paragraphs(self, paragraphs: list[str], limit: float) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for para in paragraphs:
            para_tokens = self._tokens.count(para)

            if para_tokens > limit:
                if current:
                    chunks.append("\n\n".join(current))
                    current, current_tokens = [], 0
                chunks.extend(self._pack_sentences(self._split_sentences(para), limit))
                continue

            if current and current_tokens + para_tokens > limit:
                chunks.append("\n\n".join(current))
                current, current_tokens = [], 0

            current.append(para)
            current_tokens += para_tokens

        if current:
            chunks.append("\n\n".join(current))
        return chunks

    def _pack_sentences(self, sentences: list[str], limit: float) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0
        for sentence in sentences:
            sent_tokens = self._tokens.count(sentence)
            if current and current_tokens + sent_tokens > limit:
                chunks.append(" ".join(current))
                current, current_tokens = [], 0
            current.append(sentence)
            current_tokens += sent_tokens
        if current:
            chunks.append(" ".join(current))
        return chunks

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text).
        """
        masked = text
        for abbr in _ABBREVIATIONS:
            masked = re.sub(rf"\b{re.escape(abbr)}\.", f"{abbr}\x00", masked)

        sentences: list[str] = []
        last = 0
        for match in _SENTENCE_END.finditer(masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)
        return sentences if sentences else [text.strip()]
