"""
Sync pipeline: star list → store → AI summaries → embeddings.

A run is a fixed sequence of stages, each starting only after the
previous one finished:

1. ensure the store schema
2. resolve the item list (snapshot cache, incremental or full fetch)
3. upsert every item
4. enrich unenriched items (unless skipped)
5. embed enriched items that have no embedding

Every stage is idempotent or additive, so a failed or cancelled run is
resumed by running it again. Per-item failures in stages 4 and 5 are
logged and left for the next run; store, schema and embedding-batch
failures abort the run.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .config import SyncConfig
from .embedding_batch import MAX_BATCH_SIZE, EmbeddingBatcher
from .enrichment import DEFAULT_CONCURRENCY, AtomicCounter, CancelToken, EnrichmentScheduler
from .errors import CacheError, ProviderError, SourceError
from .protocol import (
    EmbedderProtocol,
    FetchStrategy,
    ItemStoreProtocol,
    SnapshotCacheProtocol,
    StarSourceProtocol,
    SummarizerProtocol,
)
from .strategy import FullStrategy, IncrementalStrategy
from .types import Item

logger = logging.getLogger(__name__)

UPSERT_PROGRESS_EVERY = 50


@dataclass
class SyncOptions:
    """Switches for one sync run."""
    skip_enrichment: bool = False
    force_reenrich: bool = False
    force_refetch: bool = False


@dataclass
class SyncReport:
    """What a sync run did."""
    fetched: int = 0
    new_items: int = 0
    cache_updated: bool = False
    used_stale_cache: bool = False
    upserted: int = 0
    enrich_targets: int = 0
    enriched: int = 0
    embed_targets: int = 0
    embedded: int = 0


class SyncPipeline:
    """
    Orchestrates one synchronization run.

    Providers may be passed in directly or created lazily from config on
    first use, so a run that needs no AI calls never builds a client.
    """

    def __init__(
        self,
        source: StarSourceProtocol,
        store: ItemStoreProtocol,
        cache: SnapshotCacheProtocol,
        *,
        summarizer: Optional[SummarizerProtocol] = None,
        embedder: Optional[EmbedderProtocol] = None,
        config: Optional[SyncConfig] = None,
        full_strategy: Optional[FetchStrategy] = None,
        incremental_strategy: Optional[FetchStrategy] = None,
    ):
        self._source = source
        self._store = store
        self._cache = cache
        self._summarizer = summarizer
        self._embedder = embedder
        self._config = config
        self._full = full_strategy or FullStrategy()
        self._incremental = incremental_strategy or IncrementalStrategy(self._full)
        self._provider_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def _get_summarizer(self) -> SummarizerProtocol:
        with self._provider_lock:
            if self._summarizer is None:
                if self._config is None:
                    raise ValueError("No summarizer configured")
                from .providers import get_registry
                cfg = self._config.summarization
                self._summarizer = get_registry().create_summarization(cfg.name, cfg.params)
            return self._summarizer

    def _get_embedder(self) -> EmbedderProtocol:
        with self._provider_lock:
            if self._embedder is None:
                if self._config is None:
                    raise ValueError("No embedder configured")
                from .providers import get_registry
                cfg = self._config.embedding
                self._embedder = get_registry().create_embedding(cfg.name, cfg.params)
            return self._embedder

    @property
    def _concurrency(self) -> int:
        return self._config.enrich_concurrency if self._config else DEFAULT_CONCURRENCY

    @property
    def _batch_size(self) -> int:
        return self._config.embed_batch_size if self._config else MAX_BATCH_SIZE

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, options: SyncOptions, *, cancel: Optional[CancelToken] = None) -> SyncReport:
        """
        Execute one sync run.

        Raises:
            StoreError: If the store is unreachable or the schema fails
            SourceError: If a full fetch fails
            ProviderError: If an embedding batch fails or the embedder's
                dimension differs from the store's
            SyncCancelled: If ``cancel`` is set
        """
        cancel = cancel or CancelToken()
        report = SyncReport()

        self._store.init_schema()
        cancel.raise_if_cancelled()

        items = self._resolve_items(options.force_refetch, report)
        cancel.raise_if_cancelled()

        logger.info("Upserting repos into store...")
        for i, item in enumerate(items, start=1):
            cancel.raise_if_cancelled()
            self._store.upsert_item(item)
            if i % UPSERT_PROGRESS_EVERY == 0 or i == len(items):
                logger.info("  Upserted %d/%d", i, len(items))
        report.upserted = len(items)

        if options.skip_enrichment:
            logger.info("Skipping enrichment (--skip-enrich)")
        else:
            self._enrich(options.force_reenrich, report, cancel)
        cancel.raise_if_cancelled()

        self._embed(options.force_reenrich, report, cancel)

        logger.info("Sync complete!")
        return report

    def _resolve_items(self, force_refetch: bool, report: SyncReport) -> list[Item]:
        """Pick a fetch strategy from the refresh flag and the cache state."""
        if force_refetch:
            logger.info("Fetching star list from GitHub (full refresh)...")
            return self._fetch_full(report)

        try:
            cached = self._cache.read()
        except CacheError as e:
            logger.debug("No usable cache: %s", e)
            cached = []

        if cached:
            logger.info("Cache has %d repos. Checking for new stars...", len(cached))
            try:
                items = self._incremental.fetch(self._source, cached)
            except SourceError as e:
                logger.warning("  WARN: incremental fetch failed (%s), using cache as-is", e)
                report.used_stale_cache = True
                report.fetched = len(cached)
                return cached

            report.fetched = len(items)
            report.new_items = len(items) - len(cached)
            if report.new_items > 0:
                logger.info("Found %d new repos (%d total)", report.new_items, len(items))
                report.cache_updated = self._write_cache(items)
            else:
                logger.info("Cache is up to date (%d repos)", len(cached))
            return items

        logger.info("Fetching star list from GitHub...")
        return self._fetch_full(report)

    def _fetch_full(self, report: SyncReport) -> list[Item]:
        try:
            items = self._full.fetch(self._source, [])
        except SourceError as e:
            raise SourceError(f"Fetching star list: {e}") from e
        logger.info("Fetched %d repos", len(items))
        report.fetched = len(items)
        report.new_items = len(items)
        report.cache_updated = self._write_cache(items)
        return items

    def _write_cache(self, items: list[Item]) -> bool:
        """Persist the snapshot; a failure only costs the next run a refetch."""
        try:
            self._cache.write(items)
        except OSError as e:
            logger.warning("  WARN: could not update snapshot cache: %s", e)
            return False
        logger.debug("Cached %d repos", len(items))
        return True

    def _enrich(self, force: bool, report: SyncReport, cancel: CancelToken) -> None:
        targets = self._store.get_all() if force else self._store.get_unenriched()
        report.enrich_targets = len(targets)
        if not targets:
            logger.info("All repos already enriched")
            return

        logger.info("Enriching %d repos with AI summaries...", len(targets))
        scheduler = EnrichmentScheduler(
            self._get_summarizer(), self._store, concurrency=self._concurrency
        )
        counter = AtomicCounter()
        try:
            scheduler.run(targets, cancel=cancel, counter=counter)
        finally:
            report.enriched = counter.value
        logger.info("Enrichment complete (%d repos)", report.enriched)

    def _embed(self, force: bool, report: SyncReport, cancel: CancelToken) -> None:
        if force:
            # Forced runs re-embed everything, but never an item without a summary
            targets = [item for item in self._store.get_all() if item.is_enriched]
        else:
            targets = self._store.get_needing_embedding()
        report.embed_targets = len(targets)
        if not targets:
            logger.info("All repos already have embeddings")
            return

        logger.info("Generating embeddings for %d repos...", len(targets))
        embedder = self._get_embedder()
        if embedder.dimension != self._store.embedding_dimension:
            raise ProviderError(
                f"Embedder produces {embedder.dimension}-dimensional vectors, "
                f"store expects {self._store.embedding_dimension}"
            )
        batcher = EmbeddingBatcher(embedder, self._store, max_batch_size=self._batch_size)
        report.embedded = batcher.run(targets, cancel=cancel)
