"""Unit tests for keyword extraction, the relevance gate and prompt assembly."""

from __future__ import annotations

from studykb.models.rag import RetrievedChunk
from studykb.services.retrieval.keywords import extract_keywords, is_relevant, keyword_hits
from studykb.services.retrieval.prompt_builder import (
    SOURCE_SEPARATOR,
    build_prompt,
    format_source_block,
)

# ---------------------------------------------------------------------------
# Keyword extraction
# ---------------------------------------------------------------------------


class TestExtractKeywords:
    def test_hash_table_question(self) -> None:
        keywords = extract_keywords("What is a hash table and how does chaining work?")
        assert keywords == ["hash", "table", "chaining", "work"]

    def test_short_latin_words_are_ignored(self) -> None:
        assert extract_keywords("Is it ok to go?") == []

    def test_case_folded_and_deduplicated(self) -> None:
        assert extract_keywords("Graph GRAPH graph traversal") == ["graph", "traversal"]

    def test_cjk_runs_of_two_or_more(self) -> None:
        keywords = extract_keywords("什么是 光合作用 的 过程")
        assert keywords == ["什么是", "光合作用", "过程"]

    def test_single_cjk_character_is_not_a_keyword(self) -> None:
        assert extract_keywords("光 的") == []

    def test_mixed_cjk_and_latin(self) -> None:
        assert extract_keywords("解释 binary search 算法") == ["解释", "binary", "search", "算法"]

    def test_capped_at_eight(self) -> None:
        question = "alpha bravo charlie delta echo foxtrot golf hotel india juliet"
        assert extract_keywords(question) == [
            "alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel",
        ]

    def test_custom_cap(self) -> None:
        assert extract_keywords("alpha bravo charlie", max_keywords=2) == ["alpha", "bravo"]

    def test_empty_question(self) -> None:
        assert extract_keywords("") == []


# ---------------------------------------------------------------------------
# Relevance gate
# ---------------------------------------------------------------------------


class TestIsRelevant:
    def test_two_or_fewer_keywords_need_one_hit(self) -> None:
        assert is_relevant("Binary trees are hierarchical.", ["binary", "heap"]) is True
        assert is_relevant("Linked lists are linear.", ["binary", "heap"]) is False

    def test_more_keywords_need_two_hits(self) -> None:
        keywords = ["hash", "table", "chaining", "work", "bucket"]
        assert is_relevant("A hash table stores pairs.", keywords) is True
        assert is_relevant("A hash is a digest.", keywords) is False

    def test_ratio_of_half_is_enough(self) -> None:
        # 3 keywords: one hit is below both thresholds, two hits pass.
        keywords = ["stack", "queue", "deque"]
        assert is_relevant("A stack is LIFO.", keywords) is False
        assert is_relevant("A stack and a queue.", keywords) is True

    def test_substring_and_case_insensitive(self) -> None:
        assert keyword_hits("Hash Tables resolve collisions", ["hash", "table"]) == ["hash", "table"]

    def test_no_keywords_or_content(self) -> None:
        assert is_relevant("anything", []) is False
        assert is_relevant("", ["hash"]) is False


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------


def _chunk(title: str, page: int, content: str) -> RetrievedChunk:
    return RetrievedChunk(document_id=f"id-{title}", title=title, page_number=page, content=content)


class TestBuildPrompt:
    def test_no_chunks_yields_no_material_prompt(self) -> None:
        prompt = build_prompt("What is entropy?", [])
        assert prompt.startswith("Student Question: What is entropy?")
        assert "No relevant materials found in the knowledge base" in prompt
        assert "[Source" not in prompt

    def test_source_block_format(self) -> None:
        block = format_source_block(2, _chunk("Thermodynamics", 7, "Entropy measures disorder."))
        assert block == '[Source 2] "Thermodynamics" - Page 7:\nEntropy measures disorder.'

    def test_sources_numbered_in_order_and_separated(self) -> None:
        chunks = [_chunk("A", 1, "first"), _chunk("B", 4, "second")]
        prompt = build_prompt("Summarize", chunks)

        assert '[Source 1] "A" - Page 1:\nfirst' + SOURCE_SEPARATOR + '[Source 2] "B" - Page 4:\nsecond' in prompt
        assert "**Student's Message**: Summarize" in prompt
        assert "[Source X, Page Y]" in prompt
        assert "summarize" in prompt
        assert "Always use the materials provided above" in prompt
