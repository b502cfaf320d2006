"""
starwatch - sync a GitHub star list into a searchable local store.

Each starred repository is upserted into SQLite, summarized and
categorized by an LLM, and embedded for similarity search.

Quick start:
    from starwatch import SyncPipeline, SyncOptions, ItemStore, SnapshotCache
    from starwatch.github import StarListClient

    pipeline = SyncPipeline(
        StarListClient(token, list_id),
        ItemStore(Path("starwatch.db")),
        SnapshotCache(Path("stars.json")),
        config=load_or_create_config(),
    )
    pipeline.run(SyncOptions())
"""

__version__ = "0.1.0"

from .cache import SnapshotCache
from .config import SyncConfig, load_or_create_config
from .enrichment import AtomicCounter, CancelToken, EnrichmentScheduler
from .embedding_batch import EmbeddingBatcher
from .item_store import ItemStore
from .pipeline import SyncOptions, SyncPipeline, SyncReport
from .strategy import FullStrategy, IncrementalStrategy
from .types import Item, Page, PageInfo, SearchOptions, SortSpec, Stats, SummaryResult

__all__ = [
    "AtomicCounter",
    "CancelToken",
    "EmbeddingBatcher",
    "EnrichmentScheduler",
    "FullStrategy",
    "IncrementalStrategy",
    "Item",
    "ItemStore",
    "Page",
    "PageInfo",
    "SearchOptions",
    "SnapshotCache",
    "SortSpec",
    "Stats",
    "SummaryResult",
    "SyncConfig",
    "SyncOptions",
    "SyncPipeline",
    "SyncReport",
    "load_or_create_config",
]
