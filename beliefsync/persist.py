"""Persisted application state on top of a storage adapter.

PersistedState keeps a dict of application fields under one namespace key
and writes it through the storage contract as a JSON envelope::

    {"state": {...fields, "_lastModified": 1718000000000}, "version": 2}

Every change stamps ``_lastModified`` (ms, never decreasing), which is the
local side of the adapter's last-write-wins comparison. The instance
registers itself for rehydration, so a newer remote value pulled in by the
adapter is reloaded from the local store and announced to subscribers.
"""

import copy
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from beliefsync.adapter import HybridStorage
from beliefsync.types import LAST_MODIFIED_FIELD, now_ms

logger = logging.getLogger(__name__)

MigrateFn = Callable[[Dict[str, Any], int], Dict[str, Any]]
Listener = Callable[[Dict[str, Any]], None]


class PersistedState:
    """Application state persisted under ``name`` through a HybridStorage.

    Args:
        storage: The storage adapter.
        name: Namespace key the envelope is stored under.
        initial: Initial field values, also used when stored data is unusable.
        version: Schema version written into the envelope.
        migrate: Called with ``(persisted_state, persisted_version)`` when the
            stored version differs. Defaults to resetting to ``initial``.
    """

    def __init__(
        self,
        storage: HybridStorage,
        name: str,
        initial: Optional[Dict[str, Any]] = None,
        version: int = 0,
        migrate: Optional[MigrateFn] = None,
    ):
        self.storage = storage
        self.name = name
        self.version = version
        self._initial = copy.deepcopy(initial or {})
        self._migrate = migrate
        self._state: Dict[str, Any] = copy.deepcopy(self._initial)
        self._last_modified = 0
        self._listeners: List[Listener] = []
        self.hydrated = False

        storage.registry.register(name, self.rehydrate)

    # === Accessors ===

    @property
    def state(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state)

    @property
    def last_modified(self) -> int:
        return self._last_modified

    def get(self, field: str, default: Any = None) -> Any:
        return copy.deepcopy(self._state.get(field, default))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state)`` after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"State listener for {self.name!r} failed: {e}", exc_info=True)

    # === Loading ===

    def hydrate(self) -> Dict[str, Any]:
        """Load from storage. The adapter checks the service in the background."""
        self._apply(self.storage.get_item(self.name))
        self.hydrated = True
        self._emit()
        return self.state

    def rehydrate(self) -> None:
        """Reload after the adapter replaced the local value.

        Reads the local store directly so reloading does not trigger another
        remote check.
        """
        self._apply(self.storage.local.read(self.name))
        self.hydrated = True
        logger.debug(f"Rehydrated {self.name!r} (lastModified={self._last_modified})")
        self._emit()

    def _apply(self, raw: Optional[str]) -> None:
        if raw is None:
            self._state = copy.deepcopy(self._initial)
            self._last_modified = 0
            return

        try:
            envelope = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Stored state for {self.name!r} is unreadable, resetting: {e}")
            envelope = None
        if not isinstance(envelope, dict) or not isinstance(envelope.get("state"), dict):
            self._state = copy.deepcopy(self._initial)
            self._last_modified = 0
            return

        persisted = dict(envelope["state"])
        stamp = persisted.pop(LAST_MODIFIED_FIELD, 0)
        if isinstance(stamp, bool) or not isinstance(stamp, (int, float)):
            stamp = 0

        persisted_version = envelope.get("version", 0)
        if persisted_version != self.version:
            persisted = self._run_migration(persisted, persisted_version)

        state = copy.deepcopy(self._initial)
        state.update(persisted)
        self._state = state
        self._last_modified = int(stamp)

    def _run_migration(self, persisted: Dict[str, Any], from_version: Any) -> Dict[str, Any]:
        if self._migrate is None:
            logger.info(
                f"Stored state for {self.name!r} is version {from_version}, "
                f"expected {self.version}; resetting"
            )
            return {}
        try:
            migrated = self._migrate(persisted, from_version)
        except Exception as e:
            logger.error(f"Migration of {self.name!r} from {from_version} failed: {e}", exc_info=True)
            return {}
        return migrated if isinstance(migrated, dict) else {}

    # === Writing ===

    def set(self, **fields: Any) -> Dict[str, Any]:
        """Update fields, stamp ``_lastModified`` and persist."""
        self._state.update(copy.deepcopy(fields))
        self._persist()
        self._emit()
        return self.state

    def replace(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """Replace every field and persist."""
        self._state = copy.deepcopy(state)
        self._persist()
        self._emit()
        return self.state

    def clear(self) -> None:
        """Remove the stored envelope and reset to the initial state."""
        self.storage.remove_item(self.name)
        self._state = copy.deepcopy(self._initial)
        self._last_modified = 0
        self._emit()

    def _persist(self) -> None:
        self._last_modified = max(now_ms(), self._last_modified)
        self.storage.set_item(self.name, self.serialize())

    def serialize(self) -> str:
        """The envelope string as written to storage."""
        state = dict(self._state)
        state[LAST_MODIFIED_FIELD] = self._last_modified
        return json.dumps({"state": state, "version": self.version})
