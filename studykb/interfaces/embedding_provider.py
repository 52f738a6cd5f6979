"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.  The
ingestion pipeline never calls a provider directly; it goes through
:class:`~studykb.services.ingestion.embedding_batcher.EmbeddingBatcher`,
which enforces the per-request batch size.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (studykb/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and vector retrieval."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed in one request.

        Returns
        -------
        list[list[float]]
            One vector per input text, in the same order.

        Raises
        ------
        studykb.utils.errors.EmbeddingBatchError
            If the embedding API call fails.
        """

    async def embed_single(self, text: str) -> list[float]:
        """Embed one text (e.g. a search query)."""
        result = await self.embed([text])
        return result[0]

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
