"""Question answering over ingested documents (keyword and vector retrieval)."""

from studykb.services.retrieval.keyword_search import KeywordSearcher, RetrievalLimits
from studykb.services.retrieval.keywords import extract_keywords, is_relevant
from studykb.services.retrieval.prompt_builder import build_prompt
from studykb.services.retrieval.retrieval_engine import RetrievalEngine
from studykb.services.retrieval.vector_search import VectorSearcher

__all__ = [
    "KeywordSearcher",
    "RetrievalEngine",
    "RetrievalLimits",
    "VectorSearcher",
    "build_prompt",
    "extract_keywords",
    "is_relevant",
]
