"""
Item store using SQLite.

The item store is the source of truth for:
- Repository metadata (keyed by full name)
- AI summaries and categories
- Embedding vectors and the similarity search over them

Every write is keyed by ``full_name`` and idempotent, so a sync run can be
repeated or resumed without duplicating records. Similarity is computed
inside SQLite by a registered cosine function (brute-force scan over the
embedded rows).
"""

import json
import logging
import math
import sqlite3
import threading
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from .errors import StoreError
from .query import DEFAULT_FIELDS, DEFAULT_SORT, LIST_FIELDS, validate_fields, validate_sort
from .types import DEFAULT_EMBEDDING_DIMENSION, Item, SearchOptions, Stats, utc_now

logger = logging.getLogger(__name__)

SIMILARITY_METRIC = "cosine"

_ITEM_COLUMNS = (
    "full_name", "owner", "name", "description", "url", "homepage_url",
    "stars", "language", "topics", "readme_excerpt", "ai_summary",
    "ai_categories", "embedding", "fetched_at", "enriched_at",
)

# Source fields that only overwrite stored values when present
_OPTIONAL_SOURCE_FIELDS = ("description", "homepage_url", "language", "readme_excerpt")


@lru_cache(maxsize=16)
def _parse_vector(text: str) -> tuple[float, ...]:
    return tuple(json.loads(text))


def cosine_similarity(a: Optional[str], b: Optional[str]) -> Optional[float]:
    """SQL function: cosine similarity of two JSON-encoded vectors."""
    if a is None or b is None:
        return None
    va = _parse_vector(a)
    vb = _parse_vector(b)
    if len(va) != len(vb):
        return None
    dot = math.fsum(x * y for x, y in zip(va, vb))
    norm_a = math.sqrt(math.fsum(x * x for x in va))
    norm_b = math.sqrt(math.fsum(y * y for y in vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class ItemStore:
    """
    SQLite-backed store for starred repositories.

    Safe to share between threads: all statements run under one lock,
    which gives per-operation atomicity for the enrichment workers.
    """

    def __init__(self, db_path: Path, embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION):
        """
        Args:
            db_path: Path to SQLite database file
            embedding_dimension: Fixed length of stored embedding vectors
        """
        self._db_path = Path(db_path)
        self._dimension = embedding_dimension
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self) -> None:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Opening {self._db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.create_function(
            "cosine_similarity", 2, cosine_similarity, deterministic=True
        )

    @property
    def embedding_dimension(self) -> int:
        return self._dimension

    def _query(self, sql: str, params: tuple = (), *, what: str) -> list[sqlite3.Row]:
        """Run a read statement under the lock and fetch every row."""
        with self._lock:
            if self._conn is None:
                raise StoreError(f"{what}: store is closed")
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"{what}: {e}") from e

    def _write(self, sql: str, params: tuple = (), *, what: str) -> int:
        """Run and commit a write statement under the lock, returning rowcount."""
        with self._lock:
            if self._conn is None:
                raise StoreError(f"{what}: store is closed")
            try:
                cursor = self._conn.execute(sql, params)
                self._conn.commit()
                return cursor.rowcount
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(f"{what}: {e}") from e

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def init_schema(self) -> None:
        """
        Create the items table and record the embedding dimension.

        Idempotent. If the configured dimension differs from the one on
        record, existing embeddings are cleared so the next sync run
        regenerates them at the new size.
        """
        with self._lock:
            if self._conn is None:
                raise StoreError("Initializing schema: store is closed")
            try:
                self._conn.executescript("""
                    CREATE TABLE IF NOT EXISTS items (
                        full_name TEXT PRIMARY KEY,
                        owner TEXT NOT NULL,
                        name TEXT NOT NULL,
                        description TEXT,
                        url TEXT NOT NULL,
                        homepage_url TEXT,
                        stars INTEGER NOT NULL DEFAULT 0,
                        language TEXT,
                        topics TEXT NOT NULL DEFAULT '[]',
                        readme_excerpt TEXT,
                        ai_summary TEXT,
                        ai_categories TEXT,
                        embedding TEXT,
                        fetched_at TEXT NOT NULL,
                        enriched_at TEXT
                    );

                    CREATE INDEX IF NOT EXISTS idx_items_unenriched
                    ON items(full_name) WHERE ai_summary IS NULL;

                    CREATE TABLE IF NOT EXISTS embedding_meta (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    );
                """)

                row = self._conn.execute(
                    "SELECT value FROM embedding_meta WHERE key = 'dimension'"
                ).fetchone()
                if row is not None and int(row["value"]) != self._dimension:
                    cleared = self._conn.execute(
                        "UPDATE items SET embedding = NULL WHERE embedding IS NOT NULL"
                    ).rowcount
                    logger.warning(
                        "Embedding dimension changed %s -> %d; cleared %d embeddings",
                        row["value"], self._dimension, cleared,
                    )

                self._conn.executemany(
                    "INSERT OR REPLACE INTO embedding_meta (key, value) VALUES (?, ?)",
                    [("dimension", str(self._dimension)), ("metric", SIMILARITY_METRIC)],
                )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"Initializing schema: {e}") from e

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def upsert_item(self, item: Item) -> None:
        """
        Insert or merge a repository record.

        Required fields always overwrite. Optional source fields overwrite
        only when present, so an absent description never erases a stored
        one. Enrichment fields are left untouched.
        """
        data: dict[str, Any] = {
            "full_name": item.full_name,
            "owner": item.owner,
            "name": item.name,
            "url": item.url,
            "stars": item.stars,
            "topics": json.dumps(list(item.topics or []), ensure_ascii=False),
            "fetched_at": utc_now(),
        }
        for column in _OPTIONAL_SOURCE_FIELDS:
            value = getattr(item, column)
            if value is not None:
                data[column] = value

        columns = list(data)
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "full_name")
        self._write(
            f"""
            INSERT INTO items ({", ".join(columns)})
            VALUES ({placeholders})
            ON CONFLICT(full_name) DO UPDATE SET {updates}
            """,
            tuple(data[c] for c in columns),
            what=f"Upserting {item.full_name}",
        )

    def update_enrichment(self, full_name: str, summary: str, categories: list[str]) -> bool:
        """
        Set the AI summary, categories and enrichment timestamp.

        The embedding is not touched.

        Returns:
            True if the item was found and updated
        """
        updated = self._write(
            """
            UPDATE items
            SET ai_summary = ?, ai_categories = ?, enriched_at = ?
            WHERE full_name = ?
            """,
            (summary, json.dumps(list(categories or []), ensure_ascii=False), utc_now(), full_name),
            what=f"Updating enrichment for {full_name}",
        )
        return updated > 0

    def update_embedding(self, full_name: str, embedding: list[float]) -> bool:
        """
        Store the embedding vector of an item.

        Raises:
            StoreError: If the vector has the wrong dimension

        Returns:
            True if the item was found and updated
        """
        if len(embedding) != self._dimension:
            raise StoreError(
                f"Embedding for {full_name} has dimension {len(embedding)}, "
                f"expected {self._dimension}"
            )
        updated = self._write(
            "UPDATE items SET embedding = ? WHERE full_name = ?",
            (json.dumps([float(x) for x in embedding]), full_name),
            what=f"Updating embedding for {full_name}",
        )
        return updated > 0

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def _select_items(self, where: str, *, what: str) -> list[Item]:
        rows = self._query(
            f"SELECT {', '.join(_ITEM_COLUMNS)} FROM items {where} ORDER BY rowid",
            what=what,
        )
        return [_row_to_item(row) for row in rows]

    def get(self, full_name: str) -> Optional[Item]:
        """Get one item by full name."""
        rows = self._query(
            f"SELECT {', '.join(_ITEM_COLUMNS)} FROM items WHERE full_name = ?",
            (full_name,),
            what=f"Getting {full_name}",
        )
        return _row_to_item(rows[0]) if rows else None

    def get_all(self) -> list[Item]:
        return self._select_items("", what="Querying all repos")

    def get_unenriched(self) -> list[Item]:
        """Items without an AI summary."""
        return self._select_items(
            "WHERE ai_summary IS NULL", what="Querying unenriched repos"
        )

    def get_needing_embedding(self) -> list[Item]:
        """Enriched items without an embedding."""
        return self._select_items(
            "WHERE ai_summary IS NOT NULL AND embedding IS NULL",
            what="Querying repos needing embedding",
        )

    def search(self, query_vector: list[float], options: SearchOptions) -> list[dict[str, Any]]:
        """
        Rank embedded items by cosine similarity to ``query_vector``.

        Field and sort names are validated against the allow-list before
        any SQL is built. Each row maps the requested fields, in request
        order, to their values; ``score`` is always present.

        Raises:
            FieldValidationError: If a field or sort name is not allowed
            StoreError: If the query vector has the wrong dimension
        """
        fields = validate_fields(list(options.fields) or list(DEFAULT_FIELDS))
        sort = validate_sort(list(options.sort)) or list(DEFAULT_SORT)
        if options.k < 1:
            raise ValueError(f"k must be positive, got {options.k}")
        if len(query_vector) != self._dimension:
            raise StoreError(
                f"Query vector has dimension {len(query_vector)}, expected {self._dimension}"
            )

        select_parts = ["cosine_similarity(embedding, ?) AS score"]
        select_parts += [f for f in fields if f != "score"]
        order_parts = [f"{s.field} {'DESC' if s.desc else 'ASC'}" for s in sort]

        sql = (
            f"SELECT {', '.join(select_parts)} FROM items "
            f"WHERE embedding IS NOT NULL "
            f"ORDER BY {', '.join(order_parts)} LIMIT ?"
        )
        rows = self._query(
            sql,
            (json.dumps([float(x) for x in query_vector]), options.k),
            what="Vector search",
        )

        out_fields = fields if "score" in fields else [*fields, "score"]
        results = []
        for row in rows:
            result = {}
            for f in out_fields:
                value = row[f]
                if f in LIST_FIELDS:
                    value = json.loads(value) if value is not None else None
                result[f] = value
            results.append(result)
        return results

    def stats(self) -> Stats:
        """Count all, enriched and embedded items."""
        row = self._query(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(ai_summary IS NOT NULL), 0) AS enriched,
                COALESCE(SUM(embedding IS NOT NULL), 0) AS embedded
            FROM items
            """,
            what="Getting stats",
        )[0]
        return Stats(total=row["total"], enriched=row["enriched"], embedded=row["embedded"])

    def category_breakdown(self) -> dict[str, int]:
        """
        Count occurrences of each AI category.

        An item with N categories contributes to N counters.
        """
        rows = self._query(
            "SELECT ai_categories FROM items WHERE ai_categories IS NOT NULL",
            what="Getting categories",
        )
        counts: Counter[str] = Counter()
        for row in rows:
            counts.update(json.loads(row["ai_categories"]))
        return dict(counts)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        owner=row["owner"],
        name=row["name"],
        full_name=row["full_name"],
        description=row["description"],
        url=row["url"],
        homepage_url=row["homepage_url"],
        stars=row["stars"],
        language=row["language"],
        topics=json.loads(row["topics"]) if row["topics"] else [],
        readme_excerpt=row["readme_excerpt"],
        ai_summary=row["ai_summary"],
        ai_categories=json.loads(row["ai_categories"]) if row["ai_categories"] else [],
        embedding=json.loads(row["embedding"]) if row["embedding"] else None,
        fetched_at=row["fetched_at"],
        enriched_at=row["enriched_at"],
    )
