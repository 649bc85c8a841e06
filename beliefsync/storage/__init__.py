"""Client-side persistence: local durable store and pending-write queue."""

from beliefsync.storage.local import SQLiteLocalStore
from beliefsync.storage.queue import PendingWriteQueue

__all__ = ["SQLiteLocalStore", "PendingWriteQueue"]
