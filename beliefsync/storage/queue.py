"""Pending-write queue for beliefsync.

Holds writes the state service has not acknowledged yet, at most one per
storage key. The queue lives inside the local durable store under a
reserved key as a JSON array of ``{name, value, timestamp}`` objects, so it
survives restarts together with the data it describes.

Unreadable queue content is treated as an empty queue.
"""

import json
import logging
from typing import List, Optional

from beliefsync.protocols import LocalStoreProtocol
from beliefsync.types import SYNC_QUEUE_KEY, QueueItem, now_ms

logger = logging.getLogger(__name__)


class PendingWriteQueue:
    """Ordered, deduplicated queue of unacknowledged writes.

    Args:
        store: Local durable store the queue is persisted in.
        key: Reserved key the serialized queue is stored under.
    """

    def __init__(self, store: LocalStoreProtocol, key: str = SYNC_QUEUE_KEY):
        self._store = store
        self.key = key

    # === Persistence ===

    def _read(self) -> List[QueueItem]:
        raw = self._store.read(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug(f"Sync queue unreadable, treating as empty: {e}")
            return []
        if not isinstance(data, list):
            logger.debug("Sync queue is not a list, treating as empty")
            return []

        items = []
        for entry in data:
            item = QueueItem.from_dict(entry)
            if item is None:
                logger.debug(f"Skipping malformed sync queue entry: {entry!r}")
                continue
            items.append(item)
        return items

    def _write(self, items: List[QueueItem]) -> None:
        self._store.write(self.key, json.dumps([item.to_dict() for item in items]))

    # === Queue Operations ===

    def enqueue(self, name: str, value: str) -> QueueItem:
        """Queue ``value`` for ``name``, replacing any entry already queued for it."""
        items = self._read()
        item = QueueItem(name=name, value=value, timestamp=now_ms())
        for idx, existing in enumerate(items):
            if existing.name == name:
                items[idx] = item
                break
        else:
            items.append(item)
        self._write(items)
        logger.debug(f"Queued write for {name!r} ({len(items)} pending)")
        return item

    def dequeue(self, name: str, value: Optional[str] = None) -> bool:
        """Drop the entry for ``name``. Returns True if one was removed.

        With ``value``, the entry is only dropped if it still holds that
        value; a newer write queued while a send was in flight survives.
        """
        items = self._read()
        remaining = [
            item
            for item in items
            if item.name != name or (value is not None and item.value != value)
        ]
        if len(remaining) == len(items):
            return False
        self._write(remaining)
        logger.debug(f"Dequeued {name!r} ({len(remaining)} pending)")
        return True

    def has_pending(self) -> bool:
        return len(self._read()) > 0

    def drain(self) -> List[QueueItem]:
        """Current contents in queue order. Entries stay queued until dequeued."""
        return self._read()

    def get(self, name: str) -> Optional[QueueItem]:
        for item in self._read():
            if item.name == name:
                return item
        return None

    def clear(self) -> None:
        self._store.delete(self.key)

    def __len__(self) -> int:
        return len(self._read())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None
