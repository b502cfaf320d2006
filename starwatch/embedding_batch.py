"""
Chunked embedding of enriched items.

Input texts are split into requests of at most ``max_batch_size`` and sent
one at a time. The provider tags each vector with its position in the
request; that index, offset by the chunk start, decides where the vector
lands, regardless of response order. Any failed chunk fails the whole
operation.
"""

import logging
from typing import Optional

from .enrichment import CancelToken
from .errors import ProviderError, StoreError
from .protocol import EmbedderProtocol, ItemStoreProtocol
from .types import Item

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 256


class EmbeddingBatcher:
    """Embed items in bounded chunks and store the vectors."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        store: Optional[ItemStoreProtocol] = None,
        *,
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be at least 1, got {max_batch_size}")
        self._embedder = embedder
        self._store = store
        self._max_batch_size = max_batch_size

    def embed_texts(
        self,
        texts: list[str],
        *,
        cancel: Optional[CancelToken] = None,
    ) -> list[list[float]]:
        """
        Embed ``texts``, returning one vector per input in input order.

        Raises:
            ProviderError: If any chunk fails or comes back incomplete
            SyncCancelled: If ``cancel`` is set before a chunk is sent
        """
        vectors: list[Optional[list[float]]] = [None] * len(texts)

        for start in range(0, len(texts), self._max_batch_size):
            if cancel is not None:
                cancel.raise_if_cancelled()
            batch = texts[start:start + self._max_batch_size]
            end = start + len(batch)

            try:
                results = self._embedder.embed_batch(batch)
            except ProviderError as e:
                raise ProviderError(f"Creating embeddings (batch {start}-{end}): {e}") from e

            for result in results:
                if not 0 <= result.index < len(batch):
                    raise ProviderError(
                        f"Embedding index {result.index} out of range for batch {start}-{end}"
                    )
                vectors[start + result.index] = result.vector

            missing = [i for i in range(start, end) if vectors[i] is None]
            if missing:
                raise ProviderError(
                    f"No embedding returned for {len(missing)} inputs in batch {start}-{end}"
                )

        return vectors  # type: ignore[return-value]

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        vectors = self.embed_texts([text])
        if not vectors:
            raise ProviderError("No embedding returned")
        return vectors[0]

    def run(self, items: list[Item], *, cancel: Optional[CancelToken] = None) -> int:
        """
        Embed items and store each vector.

        A failed write is logged and skipped; the remaining items are
        still stored.

        Returns:
            Number of embeddings stored
        """
        if self._store is None:
            raise ValueError("EmbeddingBatcher.run requires a store")
        if not items:
            return 0

        vectors = self.embed_texts([item.embedding_text() for item in items], cancel=cancel)

        logger.info("Storing embeddings...")
        stored = 0
        for item, vector in zip(items, vectors):
            try:
                self._store.update_embedding(item.full_name, vector)
            except StoreError as e:
                logger.warning("  WARN: storing embedding for %s: %s", item.full_name, e)
                continue
            stored += 1
        logger.info("Stored %d embeddings", stored)
        return stored
