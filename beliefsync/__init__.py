"""
beliefsync - offline-first state synchronization for the belief map.

Application state is written to a local durable store first and reconciled
with a remote key-value state service in the background, last write wins.

Example:
    >>> from beliefsync import SyncClient
    >>> async with SyncClient.from_settings() as client:
    ...     beliefs = client.persisted_state("flow-storage", {"nodes": [], "edges": []}, version=2)
    ...     beliefs.hydrate()
    ...     beliefs.set(nodes=[{"id": "node-1", "data": {"label": "Trust"}}])
"""

from beliefsync.adapter import HybridStorage
from beliefsync.client import SyncClient
from beliefsync.persist import PersistedState
from beliefsync.rehydration import RehydrationRegistry
from beliefsync.remote import RemoteStateClient
from beliefsync.scheduler import SyncScheduler
from beliefsync.storage import PendingWriteQueue, SQLiteLocalStore
from beliefsync.types import QueueItem, SendResult, SyncError, SyncResult, SyncStatus

__version__ = "0.1.0"
__all__ = [
    "HybridStorage",
    "PendingWriteQueue",
    "PersistedState",
    "QueueItem",
    "RehydrationRegistry",
    "RemoteStateClient",
    "SendResult",
    "SQLiteLocalStore",
    "SyncClient",
    "SyncError",
    "SyncResult",
    "SyncScheduler",
    "SyncStatus",
]
