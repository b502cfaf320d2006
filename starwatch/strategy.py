"""
Fetch strategies over a paginated star list.

The star list connection is undocumented and its sort order is not
guaranteed. Strategies encapsulate the pagination approach so the
pipeline can pick one by policy, and so either can be swapped if the
upstream ordering changes.
"""

import logging

from .protocol import FetchStrategy, StarSourceProtocol
from .types import BACKWARD, FORWARD, Item

logger = logging.getLogger(__name__)


class FullStrategy:
    """
    Fetch every item by paging forward from the beginning.

    Makes no assumption about sort order and always returns the complete
    list. Any previously known items are ignored.
    """

    def fetch(self, source: StarSourceProtocol, known: list[Item]) -> list[Item]:
        items: list[Item] = []
        cursor = None

        while True:
            page = source.fetch_page(cursor, FORWARD)
            items.extend(page.items)
            logger.info("  Fetched %d/%d repos", len(items), page.total_count)

            if not page.page_info.has_next_page:
                break
            cursor = page.page_info.end_cursor

        return items


class IncrementalStrategy:
    """
    Fetch only new items by paging backward from the end of the list.

    Assumes the list is ordered oldest-starred first, so new stars appear
    at the end. Pages are fetched newest-first until one contains a known
    item or the start of the list is reached. New items are appended after
    the known set in oldest-to-newest order.

    This ordering is observed, not guaranteed: a periodic FullStrategy
    run is the reconciliation path if upstream ever reorders.

    Falls back to FullStrategy if nothing is known yet.
    """

    def __init__(self, fallback: FetchStrategy | None = None):
        self._fallback = fallback or FullStrategy()

    def fetch(self, source: StarSourceProtocol, known: list[Item]) -> list[Item]:
        if not known:
            logger.info("  No cache, falling back to full fetch")
            return self._fallback.fetch(source, known)

        known_names = {item.full_name for item in known}

        # Pages of new items, newest page first
        pages: list[list[Item]] = []
        cursor = None

        while True:
            page = source.fetch_page(cursor, BACKWARD)

            # Within a backward page items are still in connection order.
            # The known/new boundary can fall anywhere inside a page.
            new_on_page = []
            hit_known = False
            for item in page.items:
                if item.full_name in known_names:
                    hit_known = True
                else:
                    new_on_page.append(item)

            if new_on_page:
                pages.append(new_on_page)

            if hit_known or not page.page_info.has_previous_page:
                break
            cursor = page.page_info.start_cursor

        if not pages:
            return list(known)

        new_items = [item for page_items in reversed(pages) for item in page_items]
        logger.info("  Found %d new repos", len(new_items))
        return list(known) + new_items
