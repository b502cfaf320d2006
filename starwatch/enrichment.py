"""
Bounded-concurrency AI enrichment.

One task per item calls the summarizer and writes the result back to the
store. At most ``concurrency`` summarizer calls are in flight; the rest
wait for a worker. A failure on one item is logged and left for the next
run to retry; it never aborts the batch. Only cancellation does.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .errors import SyncCancelled
from .protocol import ItemStoreProtocol, SummarizerProtocol
from .types import Item

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
PROGRESS_EVERY = 10


class AtomicCounter:
    """Thread-safe counter shared by concurrent tasks."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Add one and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class CancelToken:
    """Cancellation signal propagated to every stage of a sync run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelled("Sync cancelled")


class EnrichmentScheduler:
    """Fan summarization out over a fixed-size worker pool."""

    def __init__(
        self,
        summarizer: SummarizerProtocol,
        store: ItemStoreProtocol,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        progress_every: int = PROGRESS_EVERY,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._summarizer = summarizer
        self._store = store
        self._concurrency = concurrency
        self._progress_every = progress_every

    def run(
        self,
        items: list[Item],
        *,
        cancel: Optional[CancelToken] = None,
        counter: Optional[AtomicCounter] = None,
    ) -> int:
        """
        Enrich ``items`` and store the results.

        Args:
            items: Items to summarize
            cancel: Stops queued tasks and discards in-flight results
            counter: Receives one increment per stored enrichment; may
                be shared across runs

        Returns:
            Number of items enriched and stored by this run

        Raises:
            SyncCancelled: If ``cancel`` was set during the run
        """
        cancel = cancel or CancelToken()
        done = AtomicCounter()
        total = len(items)
        if not items:
            return 0

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="starwatch-enrich"
        ) as pool:
            futures = [
                pool.submit(self._enrich_one, item, total, done, counter, cancel)
                for item in items
            ]
            for future in futures:
                future.result()

        cancel.raise_if_cancelled()
        return done.value

    def _enrich_one(
        self,
        item: Item,
        total: int,
        done: AtomicCounter,
        counter: Optional[AtomicCounter],
        cancel: CancelToken,
    ) -> None:
        if cancel.cancelled:
            return

        try:
            result = self._summarizer.summarize(item)
        except Exception as e:
            logger.warning("  WARN: summarizing %s: %s", item.full_name, e)
            return

        if cancel.cancelled:
            return

        try:
            self._store.update_enrichment(item.full_name, result.summary, result.categories)
        except Exception as e:
            logger.warning("  WARN: storing enrichment for %s: %s", item.full_name, e)
            return

        if counter is not None:
            counter.increment()
        n = done.increment()
        if n % self._progress_every == 0 or n == total:
            logger.info("  Enriched %d/%d", n, total)
