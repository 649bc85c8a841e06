"""Hybrid storage adapter: local-first reads and writes, background reconciliation.

HybridStorage implements the storage contract the application's persistence
layer consumes (``get_item`` / ``set_item`` / ``remove_item``). The local
durable store is always read and written synchronously; the state service is
only ever contacted from background tasks the adapter tracks.

Conflict policy is last-write-wins on timestamps: a remote value replaces the
local one only when the service's ``updated_at`` is strictly greater than the
``_lastModified`` embedded in the local envelope. That replacement happens in
the background and is announced through the rehydration registry.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Coroutine, Optional, Set

from beliefsync.logging_config import log_sync_event
from beliefsync.protocols import LocalStoreProtocol, RemoteStateProtocol
from beliefsync.rehydration import RehydrationRegistry
from beliefsync.storage.queue import PendingWriteQueue
from beliefsync.types import LAST_MODIFIED_FIELD, SendResult

logger = logging.getLogger(__name__)


def local_timestamp(raw: Optional[str]) -> int:
    """Extract ``state._lastModified`` from a serialized envelope.

    Absent, unparsable or non-numeric values read as 0.
    """
    if not raw:
        return 0
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return 0
    if not isinstance(parsed, dict):
        return 0
    state = parsed.get("state")
    if not isinstance(state, dict):
        return 0
    value = state.get(LAST_MODIFIED_FIELD)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


class HybridStorage:
    """Offline-first storage adapter over a local store and the state service.

    Args:
        local: Local durable store (synchronous).
        queue: Pending-write queue for unacknowledged writes.
        remote: Client for the state service.
        registry: Rehydration callbacks; a fresh registry is created if omitted.
        data_dir: Directory whose ``logs/`` receives sync events.
    """

    def __init__(
        self,
        local: LocalStoreProtocol,
        queue: PendingWriteQueue,
        remote: RemoteStateProtocol,
        registry: Optional[RehydrationRegistry] = None,
        data_dir: Optional[Path] = None,
    ):
        self.local = local
        self.queue = queue
        self.remote = remote
        self.registry = registry if registry is not None else RehydrationRegistry()
        self.data_dir = data_dir
        self._tasks: Set[asyncio.Task] = set()

    # === Background Tasks ===

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> Optional[asyncio.Task]:
        """Schedule ``coro`` on the running loop, or return None if there is none."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug(f"No running event loop; skipped background {label}")
            return None
        task = loop.create_task(coro, name=f"beliefsync:{label}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc}", exc_info=exc)

    @property
    def pending_tasks(self) -> int:
        """Number of background reconciliation tasks still in flight."""
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every background task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight background work and close the remote client."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.remote.aclose()

    # === Storage Contract ===

    def get_item(self, name: str) -> Optional[str]:
        """Return the local value now; check the service in the background."""
        local = self.local.read(name)
        self._spawn(self._reconcile(name), f"reconcile:{name}")
        return local

    def set_item(self, name: str, value: str) -> None:
        """Write locally now; send to the service in the background."""
        self.local.write(name, value)
        task = self._spawn(self._push(name, value), f"push:{name}")
        if task is None:
            # The send cannot even be attempted, so the write is unconfirmed
            self.queue.enqueue(name, value)

    def remove_item(self, name: str) -> None:
        """Delete locally and from the queue now; delete remotely in the background."""
        self.local.delete(name)
        self.queue.dequeue(name)
        self._spawn(self._remote_delete(name), f"delete:{name}")

    # === Reconciliation ===

    async def _reconcile(self, name: str) -> bool:
        """Apply the service's value for ``name`` if it is strictly newer.

        Compared against the local value held when the fetch returns, so a
        write made while the fetch was in flight is not overwritten.

        Returns:
            True if the local value was replaced.
        """
        record = await self.remote.fetch(name)
        if record is None:
            return False

        local_ts = local_timestamp(self.local.read(name))
        if record.updated_at <= local_ts:
            logger.debug(
                f"Local {name!r} is current (local={local_ts}, remote={record.updated_at})"
            )
            return False

        self.local.write(name, record.data)
        logger.info(
            f"Remote {name!r} is newer (local={local_ts}, remote={record.updated_at}); rehydrating"
        )
        log_sync_event(
            "rehydrate",
            f"key={name}, remote={record.updated_at}, local={local_ts}",
            data_dir=self.data_dir,
        )
        self.registry.notify(name)
        return True

    async def _push(self, name: str, value: str) -> SendResult:
        result = await self.remote.send(name, value)
        if result.ok:
            if self.local.read(name) == value:
                self.queue.dequeue(name)
            else:
                # A newer local write is still unconfirmed; keep its queue entry
                self.queue.dequeue(name, value=value)
        else:
            self.queue.enqueue(name, value)
            logger.info(f"Write for {name!r} queued for retry ({result.error})")
        return result

    async def _remote_delete(self, name: str) -> SendResult:
        result = await self.remote.delete(name)
        if not result.ok:
            # Deletes are not retried; a stale remote row is tolerated
            logger.debug(f"Remote delete for {name!r} ignored: {result.error}")
        return result
