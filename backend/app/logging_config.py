"""Logging helpers for the state service."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(debug: bool = False) -> None:
    """Attach a stderr handler to the ``beliefsync`` logger tree once."""
    global _configured
    root = logging.getLogger("beliefsync")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a service logger (``beliefsync.server.*``)."""
    return logging.getLogger(name)


def log_state_operation(
    operation: str,
    key: str,
    success: bool,
    error: str | None = None,
) -> None:
    """Log one key/value store operation."""
    logger = logging.getLogger("beliefsync.server.state")
    status = "ok" if success else "failed"
    message = f"{operation.upper()} | key={key} | {status}"
    if error:
        message += f" | error={error}"
    if success:
        logger.info(message)
    else:
        logger.warning(message)


def log_auth_event(event: str, success: bool, detail: str | None = None) -> None:
    """Log an authentication event. Never logs credentials."""
    logger = logging.getLogger("beliefsync.server.auth")
    message = f"{event.upper()} | {'ok' if success else 'rejected'}"
    if detail:
        message += f" | {detail}"
    if success:
        logger.info(message)
    else:
        logger.warning(message)
