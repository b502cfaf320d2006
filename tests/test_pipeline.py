"""
Tests for the sync pipeline: stage ordering, cache handling and flags.
"""

from unittest.mock import patch

import httpx
import pytest

from starwatch.enrichment import CancelToken
from starwatch.errors import ProviderError, SourceError, SyncCancelled
from starwatch.github import StarListClient
from starwatch.pipeline import SyncOptions, SyncPipeline

from tests.conftest import FakeEmbedder, FakeStarSource, FakeSummarizer, make_items


@pytest.fixture
def remote():
    return make_items(7)


@pytest.fixture
def source(remote):
    return FakeStarSource(remote, page_size=3)


def build(source, store, cache, **kwargs):
    kwargs.setdefault("summarizer", FakeSummarizer())
    kwargs.setdefault("embedder", FakeEmbedder())
    return SyncPipeline(source, store, cache, **kwargs)


class TestFirstRun:

    def test_full_sync(self, source, store, cache, remote):
        report = build(source, store, cache).run(SyncOptions())

        assert report.fetched == 7
        assert report.new_items == 7
        assert report.cache_updated
        assert report.upserted == 7
        assert report.enriched == 7
        assert report.embedded == 7
        assert [i.full_name for i in cache.read()] == [i.full_name for i in remote]
        counts = store.stats()
        assert (counts.total, counts.enriched, counts.embedded) == (7, 7, 7)

    def test_full_fetch_failure_propagates(self, source, store, cache):
        source.fail = True
        with pytest.raises(SourceError, match="Fetching star list"):
            build(source, store, cache).run(SyncOptions())
        assert store.stats().total == 0

    def test_rerun_is_a_no_op(self, source, store, cache):
        build(source, store, cache).run(SyncOptions())
        summarizer = FakeSummarizer()
        embedder = FakeEmbedder()

        report = build(source, store, cache, summarizer=summarizer, embedder=embedder).run(
            SyncOptions()
        )

        assert report.new_items == 0
        assert not report.cache_updated
        assert report.enrich_targets == 0
        assert report.embed_targets == 0
        assert summarizer.calls == []
        assert embedder.batches == []
        assert store.stats().total == 7


class TestIncrementalRun:

    def test_picks_up_new_stars(self, store, cache, remote):
        cache.write(remote[:5])
        source = FakeStarSource(remote, page_size=3)

        report = build(source, store, cache).run(SyncOptions())

        assert report.new_items == 2
        assert report.cache_updated
        assert len(source.calls) == 1
        assert [i.full_name for i in cache.read()] == [i.full_name for i in remote]
        assert store.stats().total == 7

    def test_source_failure_falls_back_to_cache(self, store, cache, remote):
        cache.write(remote[:5])
        source = FakeStarSource(remote)
        source.fail = True

        report = build(source, store, cache).run(SyncOptions())

        assert report.used_stale_cache
        assert report.upserted == 5
        assert store.stats().total == 5

    def test_corrupt_cache_triggers_full_fetch(self, source, store, cache):
        cache.path.write_text("garbage", encoding="utf-8")

        report = build(source, store, cache).run(SyncOptions())

        assert report.fetched == 7
        assert len(cache.read()) == 7

    def test_refresh_ignores_cache(self, store, cache, remote):
        cache.write(remote[:2])
        source = FakeStarSource(remote, page_size=3)

        report = build(source, store, cache).run(SyncOptions(force_refetch=True))

        assert report.fetched == 7
        assert all(direction == "forward" for _, direction in source.calls)
        assert len(cache.read()) == 7

    def test_cache_write_failure_is_not_fatal(self, source, store, cache):
        with patch.object(cache, "write", side_effect=OSError("read-only")):
            report = build(source, store, cache).run(SyncOptions())
        assert not report.cache_updated
        assert store.stats().total == 7


class TestEnrichmentStage:

    def test_skip_enrichment(self, source, store, cache):
        summarizer = FakeSummarizer()
        embedder = FakeEmbedder()

        report = build(source, store, cache, summarizer=summarizer, embedder=embedder).run(
            SyncOptions(skip_enrichment=True)
        )

        assert summarizer.calls == []
        assert embedder.batches == []
        assert report.enrich_targets == 0
        assert store.stats().enriched == 0

    def test_failed_items_retried_next_run(self, source, store, cache):
        failing = FakeSummarizer(fail_for={"owner3/repo3"})
        report = build(source, store, cache, summarizer=failing).run(SyncOptions())
        assert report.enriched == 6
        assert report.embedded == 6

        retry = FakeSummarizer()
        report = build(source, store, cache, summarizer=retry).run(SyncOptions())
        assert retry.calls == ["owner3/repo3"]
        assert report.embedded == 1
        assert store.stats().embedded == 7

    def test_embedding_never_precedes_summary(self, source, store, cache):
        build(source, store, cache, summarizer=FakeSummarizer(fail_for={"owner1/repo1"})).run(
            SyncOptions()
        )
        item = store.get("owner1/repo1")
        assert item.ai_summary is None
        assert item.embedding is None

    def test_force_reenriches_and_reembeds(self, source, store, cache):
        build(source, store, cache).run(SyncOptions())
        summarizer = FakeSummarizer()
        embedder = FakeEmbedder()

        report = build(source, store, cache, summarizer=summarizer, embedder=embedder).run(
            SyncOptions(force_reenrich=True)
        )

        assert len(summarizer.calls) == 7
        assert report.embed_targets == 7
        assert sum(len(b) for b in embedder.batches) == 7

    def test_force_skips_embedding_unenriched(self, source, store, cache):
        summarizer = FakeSummarizer(fail_for={"owner0/repo0"})
        report = build(source, store, cache, summarizer=summarizer).run(
            SyncOptions(force_reenrich=True)
        )
        assert report.embed_targets == 6
        assert store.get("owner0/repo0").embedding is None


class TestFailuresAndCancellation:

    def test_embedding_batch_failure_aborts(self, source, store, cache):
        with pytest.raises(ProviderError):
            build(source, store, cache, embedder=FakeEmbedder(fail_on_call=1)).run(SyncOptions())
        counts = store.stats()
        assert counts.enriched == 7
        assert counts.embedded == 0

    def test_cancelled_before_start(self, source, store, cache):
        cancel = CancelToken()
        cancel.cancel()
        with pytest.raises(SyncCancelled):
            build(source, store, cache).run(SyncOptions(), cancel=cancel)
        assert source.calls == []

    def test_providers_built_lazily_from_config(self, source, store, cache, tmp_path):
        from starwatch.config import SyncConfig

        pipeline = SyncPipeline(source, store, cache, config=SyncConfig(path=tmp_path))
        with patch("starwatch.providers.base.ProviderRegistry.create_summarization") as create:
            pipeline.run(SyncOptions(skip_enrichment=True))
        create.assert_not_called()

    def test_missing_provider_without_config(self, source, store, cache):
        pipeline = SyncPipeline(source, store, cache)
        with pytest.raises(ValueError, match="No summarizer"):
            pipeline.run(SyncOptions())


class TestSourceAndProviderMismatch:

    def test_malformed_incremental_page_falls_back_to_cache(self, store, cache, remote):
        body = {"data": {"node": {"items": {
            "totalCount": 1,
            "pageInfo": {"hasPreviousPage": False},
            "nodes": [{"name": "x", "url": "u"}],
        }}}}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        cache.write(remote[:3])

        with StarListClient("ghp_test", "UL_list", client=httpx.Client(transport=transport)) as source:
            report = build(source, store, cache).run(SyncOptions(skip_enrichment=True))

        assert report.used_stale_cache
        assert report.upserted == 3
        assert store.stats().total == 3

    def test_embedder_dimension_mismatch_fails_before_embedding(self, source, store, cache):
        class ThreeDimEmbedder(FakeEmbedder):
            dimension = 3

        embedder = ThreeDimEmbedder()
        with pytest.raises(ProviderError, match="store expects 4"):
            build(source, store, cache, embedder=embedder).run(SyncOptions())

        assert embedder.batches == []
        assert store.stats().enriched == 7

    def test_accepts_any_fetch_strategy(self, source, store, cache, remote):
        class FirstThree:
            def fetch(self, src, known):
                return remote[:3]

        report = build(source, store, cache, full_strategy=FirstThree()).run(
            SyncOptions(force_refetch=True)
        )

        assert report.fetched == 3
        assert source.calls == []
        assert store.stats().total == 3
