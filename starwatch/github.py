"""
HTTP client for a GitHub star list (user list) over the GraphQL API.

One query supports both forward (first/after) and backward (last/before)
Relay pagination via nullable variables. Each repository node is mapped
into an Item.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .errors import SourceError
from .types import BACKWARD, FORWARD, Item, Page, PageInfo, make_full_name, truncate_excerpt

logger = logging.getLogger(__name__)

GRAPHQL_ENDPOINT = "https://api.github.com/graphql"

PAGE_SIZE = 100
MAX_TOPICS = 20

DEFAULT_TIMEOUT = 30.0

PAGE_QUERY = """
query($listId: ID!, $first: Int, $after: String, $last: Int, $before: String) {
  node(id: $listId) {
    ... on UserList {
      items(first: $first, after: $after, last: $last, before: $before) {
        totalCount
        pageInfo {
          hasNextPage
          endCursor
          hasPreviousPage
          startCursor
        }
        nodes {
          ... on Repository {
            owner { login }
            name
            description
            url
            homepageUrl
            stargazerCount
            primaryLanguage { name }
            repositoryTopics(first: %d) {
              nodes { topic { name } }
            }
            object(expression: "HEAD:README.md") {
              ... on Blob { text }
            }
          }
        }
      }
    }
  }
}
""" % MAX_TOPICS


class StarListClient:
    """Paginated reader for one GitHub star list."""

    def __init__(
        self,
        token: str,
        list_id: str,
        *,
        endpoint: str = GRAPHQL_ENDPOINT,
        page_size: int = PAGE_SIZE,
        client: Optional[httpx.Client] = None,
    ):
        if not list_id:
            raise ValueError("Star list ID required. Set STAR_LIST_ID or [github] star_list_id")
        self._list_id = list_id
        self._endpoint = endpoint
        self._page_size = page_size
        self._client = client or httpx.Client(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=DEFAULT_TIMEOUT,
        )

    def fetch_page(self, cursor: Optional[str], direction: str) -> Page:
        """Fetch one page, forward from ``cursor`` or backward before it."""
        variables: dict[str, Any] = {"listId": self._list_id}
        if direction == FORWARD:
            variables["first"] = self._page_size
            if cursor is not None:
                variables["after"] = cursor
        elif direction == BACKWARD:
            variables["last"] = self._page_size
            if cursor is not None:
                variables["before"] = cursor
        else:
            raise ValueError(f"Unknown pagination direction: {direction!r}")

        data = self._graphql(PAGE_QUERY, variables)
        return parse_page(data)

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict:
        try:
            resp = self._client.post(
                self._endpoint, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as e:
            raise SourceError(f"GitHub request failed: {e}") from e

        if resp.status_code != 200:
            raise SourceError(f"GitHub API returned {resp.status_code}: {resp.text[:500]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise SourceError(f"Parsing GraphQL response: {e}") from e

        if not isinstance(body, dict):
            raise SourceError(f"Unexpected GraphQL response: {str(body)[:200]}")

        errors = body.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message", first) if isinstance(first, dict) else first
            raise SourceError(f"GraphQL error: {message}")

        return body.get("data") or {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def parse_page(data: dict) -> Page:
    """Convert the ``data`` object of a page query into a Page."""
    node = data.get("node") if isinstance(data, dict) else None
    if not isinstance(node, dict) or "items" not in node:
        raise SourceError("Star list not found (check STAR_LIST_ID and token scope)")

    try:
        items = node["items"]
        info = items.get("pageInfo") or {}
        return Page(
            items=[node_to_item(n) for n in items.get("nodes") or [] if n],
            total_count=items.get("totalCount") or 0,
            page_info=PageInfo(
                has_next_page=bool(info.get("hasNextPage")),
                end_cursor=info.get("endCursor"),
                has_previous_page=bool(info.get("hasPreviousPage")),
                start_cursor=info.get("startCursor"),
            ),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise SourceError(f"Malformed star list page: {e!r}") from e


def node_to_item(node: dict) -> Item:
    """Map a Repository node into an Item."""
    owner = node["owner"]["login"]
    name = node["name"]

    language = node.get("primaryLanguage") or {}
    topics = [
        t["topic"]["name"]
        for t in (node.get("repositoryTopics") or {}).get("nodes") or []
    ]
    readme = (node.get("object") or {}).get("text")

    return Item(
        owner=owner,
        name=name,
        full_name=make_full_name(owner, name),
        description=node.get("description"),
        url=node.get("url") or "",
        homepage_url=node.get("homepageUrl") or None,
        stars=node.get("stargazerCount") or 0,
        language=language.get("name"),
        topics=topics,
        readme_excerpt=truncate_excerpt(readme),
    )
