"""
Local snapshot of the last complete star list.

The snapshot is an indented JSON array of items in the same field shape
the store uses, so it can be diffed by hand. It is replaced wholesale
after a successful fetch and never patched in place.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import CacheError
from .types import Item

logger = logging.getLogger(__name__)


class SnapshotCache:
    """File-backed snapshot of the star list."""

    def __init__(self, path: Path):
        """
        Args:
            path: Path to the JSON snapshot file
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[Item]:
        """
        Load the snapshot.

        Raises:
            CacheError: If the file is missing, unreadable or malformed
        """
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise CacheError(f"No snapshot at {self._path}") from e
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheError(f"Unreadable snapshot {self._path}: {e}") from e

        if not isinstance(data, list):
            raise CacheError(f"Snapshot {self._path} is not a list")
        try:
            return [Item.from_dict(entry) for entry in data]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheError(f"Malformed snapshot entry in {self._path}: {e}") from e

    def write(self, items: list[Item]) -> None:
        """
        Replace the snapshot with ``items``.

        Writes to a temp file in the same directory and renames it over
        the old snapshot, so readers never see a half-written file.

        Raises:
            OSError: If the snapshot cannot be written
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([item.to_dict() for item in items], indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        logger.debug("Wrote %d items to %s", len(items), self._path)
