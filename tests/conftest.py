"""
Pytest fixtures and test configuration for beliefsync tests.
"""

import json
from typing import Dict, List, Optional, Tuple

import pytest

from beliefsync.adapter import HybridStorage
from beliefsync.rehydration import RehydrationRegistry
from beliefsync.storage import PendingWriteQueue, SQLiteLocalStore
from beliefsync.types import (
    SYNC_ERROR_NETWORK,
    RemoteRecord,
    SendResult,
    now_ms,
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep the data directory and credentials inside the test's tmp_path."""
    home = tmp_path / "beliefsync-home"
    monkeypatch.setenv("BELIEFSYNC_DATA_DIR", str(home))
    for var in ("BELIEFSYNC_BACKEND_URL", "BELIEFSYNC_AUTH_TOKEN", "BELIEFSYNC_COOKIE_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    return home


class FakeRemote:
    """In-memory stand-in for the state service client.

    ``online`` toggles whether calls succeed; every call is recorded in
    ``calls`` as ``(method, key)``.
    """

    def __init__(self):
        self.rows: Dict[str, Tuple[str, int]] = {}
        self.online = True
        self.calls: List[Tuple[str, str]] = []
        self.closed = False
        self._clock = 0

    def _stamp(self) -> int:
        self._clock = max(now_ms(), self._clock + 1)
        return self._clock

    def put(self, key: str, data: str, updated_at: int) -> None:
        """Seed a row directly, bypassing the online flag."""
        self.rows[key] = (data, updated_at)

    async def fetch(self, key: str) -> Optional[RemoteRecord]:
        self.calls.append(("fetch", key))
        if not self.online or key not in self.rows:
            return None
        data, updated_at = self.rows[key]
        return RemoteRecord(key=key, data=data, updated_at=updated_at)

    async def send(self, key: str, value: str) -> SendResult:
        self.calls.append(("send", key))
        if not self.online:
            return SendResult.failure(key, SYNC_ERROR_NETWORK, "Connection failed")
        self.rows[key] = (value, self._stamp())
        return SendResult.success(key)

    async def delete(self, key: str) -> SendResult:
        self.calls.append(("delete", key))
        if not self.online:
            return SendResult.failure(key, SYNC_ERROR_NETWORK, "Connection failed")
        self.rows.pop(key, None)
        return SendResult.success(key)

    async def aclose(self) -> None:
        self.closed = True


def envelope(last_modified: int, version: int = 0, **fields) -> str:
    """A serialized persisted-state envelope."""
    state = dict(fields)
    state["_lastModified"] = last_modified
    return json.dumps({"state": state, "version": version})


@pytest.fixture
def local_store(tmp_path):
    return SQLiteLocalStore(tmp_path / "local.db")


@pytest.fixture
def queue(local_store):
    return PendingWriteQueue(local_store)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def registry():
    return RehydrationRegistry()


@pytest.fixture
def storage(local_store, queue, remote, registry):
    return HybridStorage(local_store, queue, remote, registry)


@pytest.fixture
def make_envelope():
    return envelope
