"""
Exceptions and error logging for starwatch.

Logs full stack traces for debugging while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class StarwatchError(Exception):
    """Base class for starwatch errors."""


class SourceError(StarwatchError):
    """Fetching a page of the remote star list failed."""


class ProviderError(StarwatchError):
    """A summarization or embedding provider call failed or returned junk."""


class StoreError(StarwatchError):
    """A store operation or schema initialization failed."""


class CacheError(StarwatchError):
    """The local snapshot is missing or unreadable."""


class FieldValidationError(StarwatchError, ValueError):
    """A search field or sort clause is not on the allow-list."""


class SyncCancelled(StarwatchError):
    """The sync run was cancelled."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting STARWATCH_HOME."""
    home = os.environ.get("STARWATCH_HOME")
    if home:
        return Path(home) / "starwatch-errors.log"
    return Path.home() / ".starwatch" / "starwatch-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # error log is best-effort
    return log_path
