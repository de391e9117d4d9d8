"""Time-based cache for identity entries."""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field

from ..storage.models import IdentityEntry

logger = logging.getLogger(__name__)


@dataclass
class CachedIdentity:
    """A cached entry and the time it was stored."""

    entry: IdentityEntry
    stored_at: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: float) -> bool:
        """Check if the cached entry is older than the TTL."""
        return (time.time() - self.stored_at) > ttl_seconds


class IdentityCache:
    """In-process identity cache with per-key TTL expiry.

    Each operation holds the lock only for a single dict access, so requests
    for different keys never wait on each other for long.
    """

    def __init__(self, ttl_seconds: float = 300, prune_interval: float = 60) -> None:
        self.ttl_seconds = ttl_seconds
        self.prune_interval = prune_interval
        self._entries: dict[str, CachedIdentity] = {}
        self._lock = threading.Lock()
        self._prune_task: asyncio.Task | None = None

    def get(self, key: str) -> IdentityEntry | None:
        """Get a cached entry, or None if absent or expired."""
        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                return None
            if cached.is_expired(self.ttl_seconds):
                self._entries.pop(key, None)
                return None
            return cached.entry

    def put(self, entry: IdentityEntry) -> None:
        """Cache an entry under its key."""
        with self._lock:
            self._entries[entry.key] = CachedIdentity(entry=entry)

    def invalidate(self, key: str) -> None:
        """Drop the cached entry for a key, if any."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """Remove expired entries. Returns count of removed entries."""
        with self._lock:
            stale = [
                key
                for key, cached in self._entries.items()
                if cached.is_expired(self.ttl_seconds)
            ]
            for key in stale:
                self._entries.pop(key, None)
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    async def _prune_loop(self) -> None:
        """Background task for periodic pruning."""
        while True:
            try:
                await asyncio.sleep(self.prune_interval)
                removed = self.prune()
                if removed:
                    logger.debug("Pruned %d expired identity entries", removed)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Identity cache prune failed")

    def start_prune_task(self) -> None:
        """Start the background prune task."""
        if self._prune_task is None or self._prune_task.done():
            self._prune_task = asyncio.create_task(self._prune_loop())

    def stop_prune_task(self) -> None:
        """Stop the background prune task."""
        if self._prune_task and not self._prune_task.done():
            self._prune_task.cancel()
