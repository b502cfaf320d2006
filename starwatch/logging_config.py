"""
Logging configuration for starwatch.

Suppress verbose HTTP client output by default for better UX.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Third-party loggers that chatter at INFO on every request
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "urllib3")


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose library output.

    Progress messages from the starwatch logger still reach stderr at
    INFO; per-request HTTP logging and library warnings are silenced.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    starwatch_logger = logging.getLogger("starwatch")
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
               for h in starwatch_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        starwatch_logger.addHandler(handler)
    starwatch_logger.setLevel(logging.INFO)

    if quiet:
        warnings.filterwarnings("ignore")
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not any(isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    # The starwatch logger propagates to root in debug mode
    starwatch_logger = logging.getLogger("starwatch")
    for h in list(starwatch_logger.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            starwatch_logger.removeHandler(h)

    for name in ("starwatch", *_NOISY_LOGGERS):
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(home_path):
    """Configure a persistent operations log.

    Writes to {home_path}/starwatch-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed when the run ends.
    """
    log_path = Path(home_path) / "starwatch-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    starwatch_logger = logging.getLogger("starwatch")
    starwatch_logger.addHandler(handler)
    if starwatch_logger.level == logging.NOTSET or starwatch_logger.level > logging.INFO:
        starwatch_logger.setLevel(logging.INFO)

    return handler
