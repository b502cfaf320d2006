"""
Data types for star list synchronization.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


# README excerpts are truncated to this many characters
MAX_EXCERPT_LENGTH = 3000

# Dimension of stored embedding vectors (text-embedding-3-small, nomic-embed-text)
DEFAULT_EMBEDDING_DIMENSION = 768


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.

    All timestamps in starwatch are UTC, stored without timezone suffix.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def make_full_name(owner: str, name: str) -> str:
    """Compose the unique ``owner/name`` key of a repository."""
    return f"{owner}/{name}"


def truncate_excerpt(text: Optional[str]) -> Optional[str]:
    """Bound a README excerpt; empty text counts as absent."""
    if not text:
        return None
    return text[:MAX_EXCERPT_LENGTH]


@dataclass
class Item:
    """
    A starred repository with its source metadata and AI enrichment.

    ``full_name`` (owner/name) is the identity used for every upsert.
    An item is *enriched* once ``ai_summary`` is set and *embedded* once
    ``embedding`` is set. Optional fields left as None are never written
    over stored values.
    """
    owner: str
    name: str
    full_name: str = ""
    url: str = ""
    stars: int = 0
    description: Optional[str] = None
    homepage_url: Optional[str] = None
    language: Optional[str] = None
    topics: list[str] = field(default_factory=list)
    readme_excerpt: Optional[str] = None

    # Populated by the pipeline, not by the source
    ai_summary: Optional[str] = None
    ai_categories: list[str] = field(default_factory=list)
    embedding: Optional[list[float]] = None
    fetched_at: Optional[str] = None
    enriched_at: Optional[str] = None

    def __post_init__(self):
        if not self.full_name:
            self.full_name = make_full_name(self.owner, self.name)
        if self.topics is None:
            self.topics = []
        if self.ai_categories is None:
            self.ai_categories = []

    @property
    def is_enriched(self) -> bool:
        return self.ai_summary is not None

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None

    def embedding_text(self) -> str:
        """Text fed to the embedder: full name plus AI summary."""
        return f"{self.full_name}: {self.ai_summary or ''}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the stored field names."""
        return {
            "owner": self.owner,
            "name": self.name,
            "full_name": self.full_name,
            "description": self.description,
            "url": self.url,
            "homepage_url": self.homepage_url,
            "stars": self.stars,
            "language": self.language,
            "topics": list(self.topics),
            "readme_excerpt": self.readme_excerpt,
            "ai_summary": self.ai_summary,
            "ai_categories": list(self.ai_categories),
            "embedding": list(self.embedding) if self.embedding is not None else None,
            "fetched_at": self.fetched_at,
            "enriched_at": self.enriched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        """Build an Item from a mapping produced by :meth:`to_dict`.

        Raises:
            KeyError: If owner or name is missing
        """
        return cls(
            owner=data["owner"],
            name=data["name"],
            full_name=data.get("full_name") or "",
            url=data.get("url") or "",
            stars=int(data.get("stars") or 0),
            description=data.get("description"),
            homepage_url=data.get("homepage_url"),
            language=data.get("language"),
            topics=list(data.get("topics") or []),
            readme_excerpt=data.get("readme_excerpt"),
            ai_summary=data.get("ai_summary"),
            ai_categories=list(data.get("ai_categories") or []),
            embedding=data.get("embedding"),
            fetched_at=data.get("fetched_at"),
            enriched_at=data.get("enriched_at"),
        )


@dataclass
class PageInfo:
    """Relay-style cursor flags for one page of a connection."""
    has_next_page: bool = False
    end_cursor: Optional[str] = None
    has_previous_page: bool = False
    start_cursor: Optional[str] = None


@dataclass
class Page:
    """One page of the remote star list, items in connection order."""
    items: list[Item]
    total_count: int = 0
    page_info: PageInfo = field(default_factory=PageInfo)


# Pagination directions accepted by a star source
FORWARD = "forward"
BACKWARD = "backward"


@dataclass
class SummaryResult:
    """Parsed reply of a summarization provider."""
    summary: str
    categories: list[str] = field(default_factory=list)


@dataclass
class IndexedEmbedding:
    """One vector from an embedding call, tagged with its request position."""
    index: int
    vector: list[float]


@dataclass
class SortSpec:
    """A single ORDER BY clause of a similarity search."""
    field: str
    desc: bool = False


@dataclass
class SearchOptions:
    """Controls what ItemStore.search returns.

    ``score`` is always computed; ``fields`` picks the remaining columns.
    An empty ``sort`` means score descending.
    """
    k: int = 10
    fields: list[str] = field(default_factory=list)
    sort: list[SortSpec] = field(default_factory=list)


@dataclass
class Stats:
    """Aggregate counts over the store."""
    total: int = 0
    enriched: int = 0
    embedded: int = 0
