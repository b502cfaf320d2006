"""
Shared pytest fixtures for starwatch tests.

Provides in-memory fakes for the star list and AI providers so no test
touches the network.
"""

import random
import threading
import time
from pathlib import Path

import pytest

from starwatch.cache import SnapshotCache
from starwatch.errors import ProviderError, SourceError
from starwatch.item_store import ItemStore
from starwatch.types import BACKWARD, FORWARD, IndexedEmbedding, Item, Page, PageInfo, SummaryResult

DIMENSION = 4


def make_item(i: int, **kwargs) -> Item:
    """Build a deterministic repository item."""
    defaults = dict(
        owner=f"owner{i}",
        name=f"repo{i}",
        url=f"https://github.com/owner{i}/repo{i}",
        stars=i * 10,
        description=f"Description {i}",
        topics=[f"topic{i}"],
    )
    defaults.update(kwargs)
    return Item(**defaults)


def make_items(n: int) -> list[Item]:
    return [make_item(i) for i in range(n)]


class FakeStarSource:
    """
    In-memory star list with Relay-style cursors.

    Cursors are stringified positions: forward pages continue after the
    end cursor, backward pages end before the start cursor.
    """

    def __init__(self, items: list[Item], page_size: int = 3):
        self.items = list(items)
        self.page_size = page_size
        self.calls: list[tuple] = []
        self.fail = False

    def fetch_page(self, cursor, direction) -> Page:
        self.calls.append((cursor, direction))
        if self.fail:
            raise SourceError("simulated outage")

        n = len(self.items)
        if direction == FORWARD:
            start = int(cursor) + 1 if cursor is not None else 0
            end = min(n, start + self.page_size)
        elif direction == BACKWARD:
            end = int(cursor) if cursor is not None else n
            start = max(0, end - self.page_size)
        else:
            raise ValueError(direction)

        page_items = self.items[start:end]
        return Page(
            items=[Item.from_dict(it.to_dict()) for it in page_items],
            total_count=n,
            page_info=PageInfo(
                has_next_page=end < n,
                end_cursor=str(end - 1) if page_items else None,
                has_previous_page=start > 0,
                start_cursor=str(start) if page_items else None,
            ),
        )


class FakeSummarizer:
    """Deterministic summarizer that tracks concurrency and can fail per item."""

    def __init__(self, fail_for: set[str] | None = None, delay: float = 0.0):
        self.fail_for = set(fail_for or ())
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def summarize(self, item: Item) -> SummaryResult:
        with self._lock:
            self.calls.append(item.full_name)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if item.full_name in self.fail_for:
                raise ProviderError(f"LLM error for {item.full_name}")
            return SummaryResult(
                summary=f"Summary of {item.full_name}",
                categories=["Developer Tool"],
            )
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeEmbedder:
    """
    Deterministic embedder.

    Vector i of a request encodes the length of its text, so alignment can
    be checked from the stored vector. With ``shuffle`` the response list
    comes back in random order.
    """

    dimension = DIMENSION

    def __init__(self, shuffle: bool = False, fail_on_call: int | None = None):
        self.shuffle = shuffle
        self.fail_on_call = fail_on_call
        self.batches: list[list[str]] = []

    @staticmethod
    def vector_for(text: str) -> list[float]:
        return [float(len(text)), 1.0, 0.0, 0.5]

    def embed_batch(self, texts: list[str]) -> list[IndexedEmbedding]:
        self.batches.append(list(texts))
        if self.fail_on_call is not None and len(self.batches) == self.fail_on_call:
            raise ProviderError("embedding service unavailable")
        results = [IndexedEmbedding(index=i, vector=self.vector_for(t)) for i, t in enumerate(texts)]
        if self.shuffle:
            random.Random(len(self.batches)).shuffle(results)
        return results


@pytest.fixture
def store(tmp_path: Path):
    """A fresh ItemStore with schema initialized."""
    s = ItemStore(tmp_path / "starwatch.db", embedding_dimension=DIMENSION)
    s.init_schema()
    yield s
    s.close()


@pytest.fixture
def cache(tmp_path: Path) -> SnapshotCache:
    return SnapshotCache(tmp_path / "stars.json")
