"""Logging setup for beliefsync.

Library modules log through ``logging.getLogger(__name__)``. Applications
and the CLI call :func:`setup_beliefsync_logging` once to send the
``beliefsync`` logger to a daily file under ``<data_dir>/logs``.
Sync events worth auditing (rehydrations, queue drains) are also appended to
a separate ``sync-events-YYYY-MM-DD.log``.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from beliefsync.utils import get_beliefsync_home

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _log_dir(data_dir: Optional[Path] = None) -> Path:
    base = Path(data_dir).expanduser() if data_dir is not None else get_beliefsync_home()
    return base / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_beliefsync_logging(
    level: str = "INFO", data_dir: Optional[Path] = None
) -> logging.Logger:
    """Configure the ``beliefsync`` logger.

    Args:
        level: Log level name, case-insensitive. Unknown names fall back to INFO.
        data_dir: Directory holding ``logs/``. Defaults to the beliefsync home.

    Returns:
        The configured ``beliefsync`` logger. Calling this again does not
        add duplicate handlers.
    """
    level_name = (level or "INFO").upper()
    if level_name not in _VALID_LEVELS:
        level_name = "INFO"
    log_level = getattr(logging, level_name)

    logger = logging.getLogger("beliefsync")
    logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_dir = _log_dir(data_dir)
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / f"local-{_today()}.log")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            print(f"beliefsync: file logging disabled ({e})", file=sys.stderr)

    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in logger.handlers
    )
    if log_level == logging.DEBUG and not has_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        logger.addHandler(console)

    return logger


def log_sync_event(event: str, details: str, data_dir: Optional[Path] = None) -> None:
    """Append one line to the sync event log under ``data_dir``. Failures are ignored."""
    try:
        log_dir = _log_dir(data_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).isoformat()
        with open(log_dir / f"sync-events-{_today()}.log", "a") as f:
            f.write(f"{timestamp} | {event} | {details}\n")
    except OSError as e:
        logging.getLogger(__name__).debug(f"Sync event log unavailable: {e}")
