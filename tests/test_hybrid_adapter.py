"""Tests for the hybrid storage adapter."""

import asyncio
from unittest.mock import MagicMock

import pytest

from beliefsync.adapter import HybridStorage, local_timestamp
from beliefsync.protocols import StateStorage


class TestLocalTimestamp:
    def test_reads_last_modified(self, make_envelope):
        assert local_timestamp(make_envelope(1234, theme="dark")) == 1234

    @pytest.mark.parametrize(
        "raw",
        [None, "", "{not json", "[]", '{"state": 5}', '{"state": {}}', '{"state": {"_lastModified": "x"}}'],
    )
    def test_unusable_values_read_as_zero(self, raw):
        assert local_timestamp(raw) == 0


class TestGetItem:
    def test_satisfies_storage_contract(self, storage):
        assert isinstance(storage, StateStorage)

    def test_get_without_event_loop_returns_local(self, storage, local_store):
        local_store.write("k", "v")
        assert storage.get_item("k") == "v"
        assert storage.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_local_first_read_with_network_down(self, storage, local_store, remote):
        remote.online = False
        local_store.write("x", "local")
        assert storage.get_item("x") == "local"
        await storage.wait_idle()
        assert local_store.read("x") == "local"

    @pytest.mark.asyncio
    async def test_missing_key_returns_none_then_pulls_remote(
        self, storage, local_store, remote, registry, make_envelope
    ):
        remote.put("k", make_envelope(50), 100)
        callback = MagicMock()
        registry.register("k", callback)

        assert storage.get_item("k") is None
        await storage.wait_idle()

        assert local_store.read("k") == make_envelope(50)
        callback.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_newer_remote_overrides_local(
        self, storage, local_store, remote, registry, make_envelope
    ):
        local_store.write("flow", make_envelope(100, theme="light"))
        remote.put("flow", make_envelope(150, theme="dark"), 200)
        callback = MagicMock()
        registry.register("flow", callback)

        storage.get_item("flow")
        await storage.wait_idle()

        assert local_store.read("flow") == make_envelope(150, theme="dark")
        assert callback.call_count == 1

    @pytest.mark.asyncio
    async def test_older_remote_does_not_regress(
        self, storage, local_store, remote, registry, make_envelope
    ):
        local_store.write("flow", make_envelope(200, theme="light"))
        remote.put("flow", make_envelope(50, theme="dark"), 100)
        callback = MagicMock()
        registry.register("flow", callback)

        storage.get_item("flow")
        await storage.wait_idle()

        assert local_store.read("flow") == make_envelope(200, theme="light")
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_local(self, storage, local_store, remote, make_envelope):
        local_store.write("flow", make_envelope(100, theme="light"))
        remote.put("flow", make_envelope(1, theme="dark"), 100)

        storage.get_item("flow")
        await storage.wait_idle()

        assert local_store.read("flow") == make_envelope(100, theme="light")

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_escape(
        self, storage, local_store, remote, registry, make_envelope
    ):
        remote.put("k", make_envelope(5), 10)
        registry.register("k", MagicMock(side_effect=RuntimeError("boom")))

        storage.get_item("k")
        await storage.wait_idle()
        assert local_store.read("k") == make_envelope(5)

    @pytest.mark.asyncio
    async def test_local_write_during_fetch_is_kept(
        self, storage, local_store, remote, registry, make_envelope
    ):
        local_store.write("flow", make_envelope(100, theme="light"))
        remote.put("flow", make_envelope(150, theme="dark"), 200)
        callback = MagicMock()
        registry.register("flow", callback)

        gate = asyncio.Event()
        original_fetch = remote.fetch

        async def held_fetch(key):
            await gate.wait()
            return await original_fetch(key)

        remote.fetch = held_fetch
        assert storage.get_item("flow") == make_envelope(100, theme="light")
        await asyncio.sleep(0)
        local_store.write("flow", make_envelope(300, theme="newer-local"))
        gate.set()
        await storage.wait_idle()

        assert local_store.read("flow") == make_envelope(300, theme="newer-local")
        callback.assert_not_called()


class TestSetItem:
    @pytest.mark.asyncio
    async def test_successful_write_leaves_queue_empty(self, storage, local_store, queue, remote):
        storage.set_item("k", "v")
        assert local_store.read("k") == "v"
        await storage.wait_idle()

        assert not queue.has_pending()
        assert remote.rows["k"][0] == "v"

    @pytest.mark.asyncio
    async def test_failed_write_is_queued(self, storage, local_store, queue, remote):
        remote.online = False
        storage.set_item("k", "v")
        await storage.wait_idle()

        assert local_store.read("k") == "v"
        assert queue.get("k").value == "v"

    @pytest.mark.asyncio
    async def test_success_clears_older_queued_entry(self, storage, queue, remote):
        queue.enqueue("k", "stale")
        storage.set_item("k", "fresh")
        await storage.wait_idle()
        assert "k" not in queue

    @pytest.mark.asyncio
    async def test_failed_newer_write_survives_older_ack(self, storage, local_store, queue, remote):
        gate = asyncio.Event()
        original_send = remote.send

        async def gated_send(key, value):
            if value == "v1":
                await gate.wait()
                remote.online = True
            return await original_send(key, value)

        remote.send = gated_send
        storage.set_item("k", "v1")
        await asyncio.sleep(0)
        remote.online = False
        storage.set_item("k", "v2")
        await asyncio.sleep(0)
        assert queue.get("k").value == "v2"

        gate.set()
        await storage.wait_idle()

        assert local_store.read("k") == "v2"
        assert queue.get("k").value == "v2"

    @pytest.mark.asyncio
    async def test_set_item_returns_before_send(self, storage, remote):
        gate = asyncio.Event()
        original_send = remote.send

        async def slow_send(key, value):
            await gate.wait()
            return await original_send(key, value)

        remote.send = slow_send
        storage.set_item("k", "v")
        assert storage.pending_tasks == 1
        gate.set()
        await storage.wait_idle()
        assert storage.pending_tasks == 0

    def test_without_event_loop_write_is_queued(self, storage, local_store, queue, remote):
        storage.set_item("k", "v")
        assert local_store.read("k") == "v"
        assert queue.get("k").value == "v"
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_repeated_offline_writes_keep_one_entry(self, storage, queue, remote):
        remote.online = False
        storage.set_item("k", "v1")
        storage.set_item("k", "v2")
        await storage.wait_idle()

        items = queue.drain()
        assert len(items) == 1
        assert items[0].value == "v2"


class TestRemoveItem:
    @pytest.mark.asyncio
    async def test_delete_supersedes_queue(self, storage, local_store, queue, remote):
        remote.online = False
        storage.set_item("k", "v")
        await storage.wait_idle()
        assert "k" in queue

        remote.online = True
        remote.put("k", "v", 1)
        storage.remove_item("k")
        assert local_store.read("k") is None
        assert "k" not in queue
        await storage.wait_idle()
        assert "k" not in remote.rows

    @pytest.mark.asyncio
    async def test_remote_delete_failure_is_ignored(self, storage, local_store, queue, remote):
        local_store.write("k", "v")
        remote.online = False
        storage.remove_item("k")
        await storage.wait_idle()

        assert local_store.read("k") is None
        assert not queue.has_pending()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_aclose_cancels_tasks_and_closes_remote(self, local_store, queue, remote):
        gate = asyncio.Event()

        async def never_fetch(key):
            await gate.wait()

        remote.fetch = never_fetch
        storage = HybridStorage(local_store, queue, remote)
        storage.get_item("k")
        assert storage.pending_tasks == 1

        await storage.aclose()
        assert storage.pending_tasks == 0
        assert remote.closed

    def test_default_registry_created(self, local_store, queue, remote):
        storage = HybridStorage(local_store, queue, remote)
        assert len(storage.registry) == 0
