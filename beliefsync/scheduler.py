"""Sync scheduler: drains the pending-write queue in the background.

Two states:

- IDLE:    no polling loop is running.
- POLLING: a loop wakes every ``poll_interval`` seconds; if the queue is
           empty it stops (back to IDLE), otherwise it runs one
           drain-and-retry pass.

The scheduler goes IDLE -> POLLING when connectivity is restored or when
``start()`` finds writes left over from a previous run. Retry cadence is
fixed; there is no backoff.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from beliefsync.logging_config import log_sync_event
from beliefsync.protocols import RemoteStateProtocol
from beliefsync.storage.queue import PendingWriteQueue
from beliefsync.types import SchedulerState, SyncResult, SyncStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


class SyncScheduler:
    """Retries queued writes on connectivity changes and on a fixed interval.

    Args:
        queue: Pending-write queue to drain.
        remote: Client for the state service.
        poll_interval: Seconds between polling ticks.
        online: Initial connectivity flag.
        data_dir: Directory whose logs/ folder receives sync events.
    """

    def __init__(
        self,
        queue: PendingWriteQueue,
        remote: RemoteStateProtocol,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        online: bool = True,
        data_dir: Optional[Path] = None,
    ):
        self.queue = queue
        self.remote = remote
        self.poll_interval = poll_interval
        self._online = online
        self.data_dir = data_dir
        self._syncing = False
        self._poll_task: Optional[asyncio.Task] = None
        self._pass_lock = asyncio.Lock()

    # === State ===

    @property
    def state(self) -> SchedulerState:
        if self._poll_task is not None and not self._poll_task.done():
            return SchedulerState.POLLING
        return SchedulerState.IDLE

    @property
    def online(self) -> bool:
        return self._online

    def status(self) -> SyncStatus:
        return SyncStatus(
            online=self._online,
            pending=len(self.queue),
            syncing=self._syncing,
            scheduler_state=self.state,
        )

    # === Lifecycle ===

    async def start(self) -> None:
        """Begin polling if writes are already waiting."""
        if self.queue.has_pending():
            logger.info(f"{len(self.queue)} queued writes at startup; polling")
            self._ensure_polling()

    async def stop(self) -> None:
        """Cancel the polling loop, if any."""
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _ensure_polling(self) -> None:
        """Start the polling loop unless one is already running."""
        if self.state is SchedulerState.POLLING:
            return
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(), name="beliefsync:poll"
        )

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if not self.queue.has_pending():
                logger.debug("Sync queue empty; polling stopped")
                return
            try:
                await self.process_queue()
            except Exception as e:
                # Keep polling; the next tick retries
                logger.error(f"Sync pass failed: {e}", exc_info=True)

    # === Connectivity ===

    async def notify_online(self) -> SyncResult:
        """Connectivity restored: run a pass now, then keep polling if needed."""
        self._online = True
        logger.info("Connectivity restored; draining sync queue")
        result = await self.process_queue()
        if self.queue.has_pending():
            self._ensure_polling()
        return result

    def notify_offline(self) -> None:
        """Connectivity lost. Queued writes wait for the next online event or tick."""
        self._online = False
        logger.info("Connectivity lost; writes will queue locally")

    async def sync_now(self) -> Optional[SyncResult]:
        """Manual sync request. Does nothing while offline or already syncing."""
        if not self._online or self._syncing:
            return None
        return await self.process_queue()

    # === Drain-and-Retry ===

    async def process_queue(self) -> SyncResult:
        """Attempt every queued write once.

        Acknowledged items are dequeued; failed items stay queued. Passes
        never overlap.
        """
        async with self._pass_lock:
            self._syncing = True
            try:
                return await self._drain_once()
            finally:
                self._syncing = False

    async def _drain_once(self) -> SyncResult:
        result = SyncResult()
        items = self.queue.drain()
        if not items:
            return result

        logger.debug(f"Retrying {len(items)} queued writes")
        for item in items:
            send = await self.remote.send(item.name, item.value)
            if send.ok:
                # A newer write queued while this one was in flight stays queued
                self.queue.dequeue(item.name, value=item.value)
                result.pushed += 1
            else:
                result.failed += 1
                result.errors.append(send.error)

        logger.info(f"Sync pass complete: pushed={result.pushed}, failed={result.failed}")
        log_sync_event(
            "drain",
            f"pushed={result.pushed}, failed={result.failed}",
            data_dir=self.data_dir,
        )
        return result
