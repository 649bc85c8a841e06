"""
beliefsync Protocol Definitions
===============================

Interface contracts between the sync components.

- LocalStoreProtocol:   synchronous key -> string persistence on the client.
- RemoteStateProtocol:  asynchronous access to the state service.
- StateStorage:         the storage contract the application's persistence
                        layer consumes (get_item / set_item / remove_item).

Error handling philosophy:
- Local stores never raise; failures read as absent and writes become no-ops.
- Remote calls never raise for transport or HTTP problems; they return
  ``None`` (fetch) or a ``SendResult`` carrying a ``SyncError``.
- StateStorage methods never surface remote failures to the caller.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from beliefsync.types import RemoteRecord, SendResult


@runtime_checkable
class LocalStoreProtocol(Protocol):
    """Synchronous key-to-string persistence that survives restarts."""

    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


@runtime_checkable
class RemoteStateProtocol(Protocol):
    """Asynchronous client for the key-value state service."""

    async def fetch(self, key: str) -> Optional[RemoteRecord]: ...

    async def send(self, key: str, value: str) -> SendResult: ...

    async def delete(self, key: str) -> SendResult: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class StateStorage(Protocol):
    """Storage contract consumed by the persistence layer."""

    def get_item(self, name: str) -> Optional[str]: ...

    def set_item(self, name: str, value: str) -> None: ...

    def remove_item(self, name: str) -> None: ...
