"""studykb -- document knowledge-base ingestion and retrieval-augmented answering.

Uploaded study materials (PDF, slide decks, word documents, images) are
extracted, OCR'd, semantically chunked, embedded and persisted by the
ingestion pipeline; the retrieval engine later selects relevant chunks and
asks an LLM for a grounded, cited answer.  Build a wired instance with
:func:`studykb.main.build_knowledge_base`.
"""

__version__ = "0.1.0"
