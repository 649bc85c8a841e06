"""
Shared sync types for beliefsync.

These dataclasses are the vocabulary passed between the local store, the
pending-write queue, the remote client, the storage adapter and the
scheduler. Timestamps are integer milliseconds since the epoch, the same
unit the state service uses for ``updated_at``.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


# === Constants ===

# Reserved local-store key holding the pending-write queue
SYNC_QUEUE_KEY = "__sync_queue"

# Field inside the persisted envelope's ``state`` carrying the logical clock
LAST_MODIFIED_FIELD = "_lastModified"

# Sync error categories
SYNC_ERROR_NETWORK = "network"
SYNC_ERROR_TIMEOUT = "timeout"
SYNC_ERROR_AUTH = "auth"
SYNC_ERROR_HTTP = "http"
SYNC_ERROR_MALFORMED = "malformed"
SYNC_ERROR_OFFLINE = "offline"

SYNC_ERROR_CATEGORIES = frozenset(
    {
        SYNC_ERROR_NETWORK,
        SYNC_ERROR_TIMEOUT,
        SYNC_ERROR_AUTH,
        SYNC_ERROR_HTTP,
        SYNC_ERROR_MALFORMED,
        SYNC_ERROR_OFFLINE,
    }
)


class SchedulerState(str, Enum):
    """Sync scheduler states."""

    IDLE = "idle"
    POLLING = "polling"


# === Queue Types ===


@dataclass
class QueueItem:
    """A write that has not been acknowledged by the state service."""

    name: str  # Target storage key
    value: str  # Serialized payload to send
    timestamp: int  # Local enqueue time in ms (diagnostic only)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["QueueItem"]:
        """Build an item from its persisted form, or None if malformed."""
        if not isinstance(data, dict):
            return None
        name = data.get("name")
        value = data.get("value")
        if not isinstance(name, str) or not isinstance(value, str):
            return None
        timestamp = data.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            timestamp = 0
        return cls(name=name, value=value, timestamp=int(timestamp))


# === Remote Types ===


@dataclass
class RemoteRecord:
    """A key's current value as held by the state service."""

    key: str
    data: str  # Payload re-serialized to the string form the adapter stores
    updated_at: int  # Server receipt time of the last write, in ms


@dataclass
class Ack:
    """Acknowledgement of a remote write or delete."""

    key: str
    status_code: int


@dataclass
class SyncError:
    """A failed remote call, classified by category."""

    key: str
    category: str  # One of SYNC_ERROR_CATEGORIES
    message: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.category}: {self.key}: {self.message}"


@dataclass
class SendResult:
    """Outcome of one remote send: exactly one of ``ack`` / ``error`` is set."""

    key: str
    ack: Optional[Ack] = None
    error: Optional[SyncError] = None

    @property
    def ok(self) -> bool:
        return self.ack is not None and self.error is None

    @classmethod
    def success(cls, key: str, status_code: int = 200) -> "SendResult":
        return cls(key=key, ack=Ack(key=key, status_code=status_code))

    @classmethod
    def failure(
        cls, key: str, category: str, message: str, status_code: Optional[int] = None
    ) -> "SendResult":
        return cls(
            key=key,
            error=SyncError(key=key, category=category, message=message, status_code=status_code),
        )


@dataclass
class SyncResult:
    """Result of one drain-and-retry pass over the pending-write queue."""

    pushed: int = 0  # Items acknowledged and dequeued
    failed: int = 0  # Items left queued for the next pass
    errors: List[SyncError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def attempted(self) -> int:
        return self.pushed + self.failed


@dataclass
class SyncStatus:
    """Snapshot of what the application may observe about synchronization."""

    online: bool
    pending: int
    syncing: bool
    scheduler_state: SchedulerState = SchedulerState.IDLE

    @property
    def state(self) -> str:
        """Single label for a status indicator."""
        if not self.online:
            return "offline"
        if self.syncing:
            return "syncing"
        if self.pending:
            return "pending"
        return "synced"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "online": self.online,
            "pending": self.pending,
            "syncing": self.syncing,
            "scheduler": self.scheduler_state.value,
        }
