"""
Protocol definitions for the sync pipeline's collaborators.

Defines interface contracts for:
- the remote star list (StarSourceProtocol) and the fetch strategies over it
- the AI providers (SummarizerProtocol, EmbedderProtocol)
- durable state (ItemStoreProtocol, SnapshotCacheProtocol)

Using Protocol for structural subtyping - no explicit inheritance required.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .types import IndexedEmbedding, Item, Page, SearchOptions, Stats, SummaryResult


@runtime_checkable
class StarSourceProtocol(Protocol):
    """
    Paginated read access to a remote star list.

    Implemented by:
    - StarListClient (GitHub GraphQL)
    """

    def fetch_page(self, cursor: Optional[str], direction: str) -> Page:
        """
        Fetch one page of the collection.

        Args:
            cursor: Opaque cursor from a previous page, or None to start
                    from the beginning (forward) or the end (backward)
            direction: ``"forward"`` or ``"backward"``

        Returns:
            Page whose items are in connection order (oldest first)

        Raises:
            SourceError: If the request fails
        """
        ...


@runtime_checkable
class FetchStrategy(Protocol):
    """An algorithm that resolves the complete item list from a source."""

    def fetch(self, source: StarSourceProtocol, known: list[Item]) -> list[Item]:
        """
        Return the complete item list.

        Args:
            source: Remote star list
            known: Previously cached items (may be empty)
        """
        ...


@runtime_checkable
class SummarizerProtocol(Protocol):
    """Produces an AI summary and category labels for a repository."""

    def summarize(self, item: Item) -> SummaryResult:
        """
        Raises:
            ProviderError: On call failure or an unparseable reply
        """
        ...


@runtime_checkable
class EmbedderProtocol(Protocol):
    """
    Generates vector embeddings from text.

    Results carry the position of their input within the request. The
    order of the returned list is not significant.
    """

    @property
    def dimension(self) -> int:
        """Dimensionality of the returned vectors."""
        ...

    def embed_batch(self, texts: list[str]) -> list[IndexedEmbedding]:
        """
        Embed one request worth of texts.

        Raises:
            ProviderError: On call failure
        """
        ...


@runtime_checkable
class ItemStoreProtocol(Protocol):
    """
    Durable, queryable item storage keyed by full name.

    Implemented by:
    - ItemStore (SQLite)
    """

    @property
    def embedding_dimension(self) -> int:
        """Fixed length of stored embedding vectors."""
        ...

    def init_schema(self) -> None: ...

    def upsert_item(self, item: Item) -> None: ...

    def get_unenriched(self) -> list[Item]: ...

    def get_needing_embedding(self) -> list[Item]: ...

    def get_all(self) -> list[Item]: ...

    def update_enrichment(self, full_name: str, summary: str, categories: list[str]) -> bool: ...

    def update_embedding(self, full_name: str, embedding: list[float]) -> bool: ...

    def search(self, query_vector: list[float], options: SearchOptions) -> list[dict[str, Any]]: ...

    def stats(self) -> Stats: ...

    def category_breakdown(self) -> dict[str, int]: ...

    def close(self) -> None: ...


@runtime_checkable
class SnapshotCacheProtocol(Protocol):
    """File-backed snapshot of the last complete item list."""

    def read(self) -> list[Item]:
        """
        Raises:
            CacheError: If the snapshot is missing or corrupt
        """
        ...

    def write(self, items: list[Item]) -> None: ...
