"""Tests for full and incremental star list fetch strategies."""

import pytest

from starwatch.errors import SourceError
from starwatch.strategy import FullStrategy, IncrementalStrategy
from starwatch.types import BACKWARD, FORWARD

from tests.conftest import FakeStarSource, make_items


def names(items):
    return [it.full_name for it in items]


class TestFullStrategy:

    def test_pages_forward_until_no_next_page(self):
        remote = make_items(10)
        source = FakeStarSource(remote, page_size=3)

        result = FullStrategy().fetch(source, [])

        assert names(result) == names(remote)
        assert len(source.calls) == 4
        assert all(direction == FORWARD for _, direction in source.calls)
        assert source.calls[0][0] is None

    def test_ignores_known_items(self):
        remote = make_items(4)
        source = FakeStarSource(remote, page_size=10)

        result = FullStrategy().fetch(source, make_items(2))

        assert names(result) == names(remote)

    def test_empty_remote(self):
        source = FakeStarSource([], page_size=3)
        assert FullStrategy().fetch(source, []) == []
        assert len(source.calls) == 1

    def test_source_error_propagates(self):
        source = FakeStarSource(make_items(3))
        source.fail = True
        with pytest.raises(SourceError):
            FullStrategy().fetch(source, [])


class TestIncrementalStrategy:

    def test_new_items_across_page_boundary(self):
        """Two pages of new items, then a page of known ones."""
        remote = make_items(12)
        known = remote[:6]
        source = FakeStarSource(remote, page_size=3)

        result = IncrementalStrategy().fetch(source, known)

        assert names(result) == names(remote)
        # pages [9..11], [6..8] new; [3..5] known stops the walk
        assert len(source.calls) == 3
        assert all(direction == BACKWARD for _, direction in source.calls)

    def test_mixed_page_partitions_per_item(self):
        remote = make_items(10)
        known = remote[:8]
        source = FakeStarSource(remote, page_size=3)

        result = IncrementalStrategy().fetch(source, known)

        assert names(result) == names(known) + ["owner8/repo8", "owner9/repo9"]
        assert len(source.calls) == 1

    def test_no_new_items_returns_known(self):
        remote = make_items(5)
        source = FakeStarSource(remote, page_size=3)

        result = IncrementalStrategy().fetch(source, list(remote))

        assert names(result) == names(remote)
        assert len(source.calls) == 1

    def test_new_items_appended_after_known_order(self):
        """Known items keep their cached order; new ones follow oldest first."""
        remote = make_items(6)
        known = [remote[2], remote[0], remote[1]]
        source = FakeStarSource(remote, page_size=2)

        result = IncrementalStrategy().fetch(source, known)

        assert names(result) == names(known) + names(remote[3:])

    def test_reaches_start_of_list_without_known_item(self):
        """Known items missing upstream: walk stops at the first page."""
        remote = make_items(5)
        known = make_items(8)[6:]  # not present remotely
        source = FakeStarSource(remote, page_size=2)

        result = IncrementalStrategy().fetch(source, known)

        assert names(result) == names(known) + names(remote)
        assert len(source.calls) == 3

    def test_empty_known_set_behaves_like_full(self):
        remote = make_items(7)
        full_source = FakeStarSource(remote, page_size=3)
        inc_source = FakeStarSource(remote, page_size=3)

        full = FullStrategy().fetch(full_source, [])
        incremental = IncrementalStrategy().fetch(inc_source, [])

        assert names(incremental) == names(full)
        assert inc_source.calls == full_source.calls

    def test_source_error_propagates(self):
        source = FakeStarSource(make_items(3))
        source.fail = True
        with pytest.raises(SourceError):
            IncrementalStrategy().fetch(source, make_items(2))
