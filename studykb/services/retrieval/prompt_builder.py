"""Grounded-answer prompt assembly.

The prompt lists every retrieved chunk as a numbered source block::

    [Source 1] "Data Structures" - Page 4:
    <chunk text>

    ---

    [Source 2] ...

followed by the student's question and instructions to cite
``[Source N, Page P]``.  Source numbers follow the order of the chunk
list, which is also the order of ``RAGAnswer.sources``.
"""

from __future__ import annotations

from studykb.models.rag import RetrievedChunk

SOURCE_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = (
    "You are a helpful AI teaching assistant. You answer students' questions "
    "using the learning materials they uploaded to their knowledge base, and you "
    "cite the sources you rely on."
)


def format_source_block(index: int, chunk: RetrievedChunk) -> str:
    """Render one chunk as ``[Source N] "title" - Page P:`` plus its content."""
    return f'[Source {index}] "{chunk.title}" - Page {chunk.page_number}:\n{chunk.content}'


def build_no_material_prompt(question: str) -> str:
    return (
        f"Student Question: {question}\n\n"
        "No relevant materials found in the knowledge base. Please inform the student "
        "that you cannot answer based on the uploaded materials and provide brief "
        "suggestions. Do not make up an answer."
    )


def build_prompt(question: str, chunks: list[RetrievedChunk]) -> str:
    """Build the user prompt for *question* grounded on *chunks*.

    With no chunks the prompt tells the model that nothing relevant was
    found, so it says so instead of inventing an answer.
    """
    if not chunks:
        return build_no_material_prompt(question)

    context = SOURCE_SEPARATOR.join(
        format_source_block(index, chunk) for index, chunk in enumerate(chunks, start=1)
    )
    return (
        "The student has selected some learning materials and wants to discuss them with you.\n\n"
        f"**Available Materials**:\n{context}\n\n"
        f"**Student's Message**: {question}\n\n"
        "**Your Task**:\n"
        "1. **Understand the student's intent**:\n"
        '   - If they ask to "read", "summarize", or "tell me about" the document, '
        "provide an overview of the key content\n"
        "   - If they ask a specific question, find and explain the relevant information\n"
        "   - If they want clarification, explain the concepts clearly\n\n"
        "2. **Always use the materials provided above** to inform your response; "
        "ground every claim in them\n\n"
        "3. **Cite your sources**: Always reference [Source X, Page Y] inline when you "
        "mention specific information\n\n"
        "4. **Be conversational and helpful**: only say the materials do not cover "
        "something when the question is truly unrelated to them\n\n"
        "Now, respond to the student naturally and helpfully:"
    )
