"""SyncClient: wires the sync components together from settings."""

import logging
from typing import Any, Dict, Optional

import httpx

from beliefsync.adapter import HybridStorage
from beliefsync.config import SyncSettings, get_settings
from beliefsync.credentials import Credentials, load_credentials
from beliefsync.persist import MigrateFn, PersistedState
from beliefsync.rehydration import RehydrationRegistry
from beliefsync.remote import RemoteStateClient
from beliefsync.scheduler import SyncScheduler
from beliefsync.storage import PendingWriteQueue, SQLiteLocalStore
from beliefsync.types import SyncStatus

logger = logging.getLogger(__name__)


class SyncClient:
    """Local store, queue, remote client, adapter and scheduler for one data directory.

    Use as an async context manager so the scheduler starts with the loop
    and background work is shut down cleanly::

        async with SyncClient.from_settings() as client:
            beliefs = client.persisted_state("flow-storage", {"nodes": []}, version=2)
            beliefs.hydrate()
    """

    def __init__(
        self,
        settings: SyncSettings,
        credentials: Optional[Credentials] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.credentials = credentials if credentials is not None else load_credentials(settings)
        self.local = SQLiteLocalStore(settings.db_path)
        self.queue = PendingWriteQueue(self.local)
        self.remote = RemoteStateClient(
            self.credentials, timeout=settings.request_timeout, transport=transport
        )
        self.registry = RehydrationRegistry()
        self.storage = HybridStorage(
            self.local, self.queue, self.remote, self.registry, data_dir=settings.data_dir
        )
        self.scheduler = SyncScheduler(
            self.queue,
            self.remote,
            poll_interval=settings.poll_interval,
            data_dir=settings.data_dir,
        )

    @classmethod
    def from_settings(cls, **overrides: Any) -> "SyncClient":
        return cls(get_settings(**overrides))

    async def __aenter__(self) -> "SyncClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if not self.remote.configured:
            logger.info("No backend configured; running local-only, writes will queue")
        await self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.storage.aclose()

    def persisted_state(
        self,
        name: Optional[str] = None,
        initial: Optional[Dict[str, Any]] = None,
        version: int = 0,
        migrate: Optional[MigrateFn] = None,
    ) -> PersistedState:
        """Application state under ``name`` (defaults to the configured namespace)."""
        return PersistedState(
            self.storage,
            name or self.settings.namespace,
            initial=initial,
            version=version,
            migrate=migrate,
        )

    def status(self) -> SyncStatus:
        return self.scheduler.status()
