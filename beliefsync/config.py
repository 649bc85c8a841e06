"""Client configuration for beliefsync."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from beliefsync.utils import get_beliefsync_home


class SyncSettings(BaseSettings):
    """Client settings loaded from ``BELIEFSYNC_*`` environment variables."""

    # State service
    backend_url: Optional[str] = None
    auth_token: Optional[str] = None  # Sent as "Authorization: Bearer ..."
    cookie_token: Optional[str] = None  # Sent as the auth-token cookie

    # Local persistence
    data_dir: Path = Field(default_factory=get_beliefsync_home)
    db_name: str = "beliefsync.db"
    namespace: str = "flow-storage"  # Key the application state envelope lives under

    # Sync cadence
    poll_interval: float = Field(default=30.0, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)

    log_level: str = "INFO"

    class Config:
        env_prefix = "BELIEFSYNC_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir).expanduser() / self.db_name

    @property
    def credentials_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "credentials.json"


def get_settings(**overrides) -> SyncSettings:
    """Build settings, letting explicit keyword arguments win over the environment."""
    return SyncSettings(**overrides)
