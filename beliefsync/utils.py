"""Small helpers shared across beliefsync."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def get_beliefsync_home() -> Path:
    """Data directory for the local store, credentials and logs.

    ``BELIEFSYNC_DATA_DIR`` overrides the default ``~/.beliefsync``.
    """
    override = os.environ.get("BELIEFSYNC_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".beliefsync"


def validate_backend_url(url: Optional[str], *, allow_localhost_http: bool = True) -> Optional[str]:
    """Validate a backend URL before credentials are sent to it.

    Only ``https`` is accepted, plus plaintext ``http`` to localhost or
    127.0.0.1 when ``allow_localhost_http`` is set.

    Returns:
        The URL without a trailing slash, or None if rejected.
    """
    if not url:
        return None

    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"}:
        logger.warning("Invalid backend_url scheme; only http/https allowed.")
        return None
    if not parsed.netloc:
        logger.warning("Invalid backend_url; missing host.")
        return None
    if parsed.scheme == "http":
        if not allow_localhost_http:
            logger.warning("HTTP not allowed in this context.")
            return None
        host = parsed.hostname or ""
        if host not in {"localhost", "127.0.0.1"}:
            logger.warning("Refusing non-local http backend_url for security.")
            return None
    return url.rstrip("/")
