"""Credential loading for the state service.

The service accepts either an ``Authorization: Bearer`` header or an
``auth-token`` cookie. Whichever the current session holds is attached to
every request; the bearer header is preferred when both exist.
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from beliefsync.config import SyncSettings
from beliefsync.utils import validate_backend_url

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth-token"


@dataclass
class Credentials:
    """Where the state service lives and how to prove who we are."""

    backend_url: Optional[str] = None
    auth_token: Optional[str] = None
    cookie_token: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.backend_url)

    @property
    def has_credential(self) -> bool:
        return bool(self.auth_token or self.cookie_token)

    def headers(self) -> Dict[str, str]:
        """Request headers carrying the session credential, if any."""
        if self.auth_token:
            return {"Authorization": f"Bearer {self.auth_token}"}
        if self.cookie_token:
            return {"Cookie": f"{AUTH_COOKIE_NAME}={self.cookie_token}"}
        return {}


def load_credentials(settings: SyncSettings) -> Credentials:
    """Resolve credentials for the state service.

    Priority:
    1. ``BELIEFSYNC_*`` environment variables (via ``settings``)
    2. ``<data_dir>/credentials.json``

    A backend URL that fails validation is dropped, which leaves the client
    in local-only mode with every write queued.
    """
    backend_url = settings.backend_url
    auth_token = settings.auth_token
    cookie_token = settings.cookie_token

    credentials_path = settings.credentials_path
    if credentials_path.exists():
        try:
            with open(credentials_path) as f:
                creds = json.load(f)
            if isinstance(creds, dict):
                backend_url = backend_url or creds.get("backend_url")
                # Accept "token" as an alias for "auth_token"
                auth_token = auth_token or creds.get("auth_token") or creds.get("token")
                cookie_token = cookie_token or creds.get("cookie_token")
        except (json.JSONDecodeError, OSError) as e:
            logger.debug(f"Failed to load credentials file: {e}")

    if backend_url:
        backend_url = validate_backend_url(backend_url)

    return Credentials(
        backend_url=backend_url,
        auth_token=auth_token,
        cookie_token=cookie_token,
    )
