"""In-process cache of rendered dashboard pages, keyed by path."""

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# Capability handed to mutations: mark the cached output for a path stale.
Invalidator = Callable[[str], None]


class PageCache:
    """Path-keyed payload cache.

    Entries live until invalidate() is called for their path; there is no
    expiry or eviction.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> Any | None:
        """Return the cached payload for a path, or None on a miss."""
        with self._lock:
            return self._entries.get(path)

    def set(self, path: str, payload: Any) -> None:
        """Store the payload rendered for a path."""
        with self._lock:
            self._entries[path] = payload

    def invalidate(self, path: str) -> None:
        """Drop the cached payload for a path so the next read recomputes it."""
        with self._lock:
            self._entries.pop(path, None)
        logger.debug(f"Invalidated cached page {path}")
