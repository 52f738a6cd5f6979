"""Batched embedding of chunk texts.

Splits the input into fixed-size batches (100 by default) and sends them
to the embedding provider one after another.  Vectors are concatenated
positionally, so output order always matches input order.  Any failing
batch fails the whole call; the caller persists nothing in that case.
"""

from __future__ import annotations

import structlog

from studykb.interfaces.embedding_provider import IEmbeddingProvider
from studykb.utils.errors import EmbeddingBatchError, KnowledgeBaseError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 100


class EmbeddingBatcher:
    def __init__(self, provider: IEmbeddingProvider, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def embed_all(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises
        ------
        EmbeddingBatchError
            If any batch fails or returns the wrong number of vectors.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        total_batches = (len(texts) + self._batch_size - 1) // self._batch_size

        for batch_no, start in enumerate(range(0, len(texts), self._batch_size), start=1):
            batch = texts[start : start + self._batch_size]
            try:
                batch_vectors = await self._provider.embed(batch)
            except EmbeddingBatchError:
                raise
            except KnowledgeBaseError as exc:
                raise EmbeddingBatchError(
                    f"Batch {batch_no}/{total_batches} failed: {exc.message}",
                    provider_name=exc.provider_name,
                ) from exc
            except Exception as exc:
                raise EmbeddingBatchError(
                    f"Batch {batch_no}/{total_batches} failed: {exc}",
                    provider_name=self._provider.get_provider_name(),
                ) from exc

            if len(batch_vectors) != len(batch):
                raise EmbeddingBatchError(
                    f"Batch {batch_no}/{total_batches} returned {len(batch_vectors)} "
                    f"vectors for {len(batch)} texts",
                    provider_name=self._provider.get_provider_name(),
                )

            vectors.extend(batch_vectors)
            logger.debug("embedding_batch", batch=batch_no, of=total_batches, size=len(batch))

        logger.info("embedding_complete", texts=len(texts), batches=total_batches)
        return vectors
