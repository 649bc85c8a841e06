"""Registry of per-key rehydration callbacks.

The storage adapter calls back into the application when it discovers the
service holds a newer value than the local store. One callback per key;
registering again replaces it. The registry is an explicit object owned by
the application and handed to the adapter, so its lifetime is the
application's lifetime.
"""

import logging
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RehydrationCallback = Callable[[], None]


class RehydrationRegistry:
    """Maps storage keys to the callback that reloads them."""

    def __init__(self):
        self._callbacks: Dict[str, RehydrationCallback] = {}

    def register(self, name: str, callback: RehydrationCallback) -> None:
        if name in self._callbacks:
            logger.debug(f"Replacing rehydration callback for {name!r}")
        self._callbacks[name] = callback

    def get(self, name: str) -> Optional[RehydrationCallback]:
        return self._callbacks.get(name)

    def names(self) -> List[str]:
        return list(self._callbacks)

    def notify(self, name: str) -> bool:
        """Invoke the callback for ``name``.

        Returns:
            True if a callback ran to completion. A failing callback is
            logged and contained.
        """
        callback = self._callbacks.get(name)
        if callback is None:
            return False
        try:
            callback()
        except Exception as e:
            logger.error(f"Rehydration callback for {name!r} failed: {e}", exc_info=True)
            return False
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks

    def __len__(self) -> int:
        return len(self._callbacks)
