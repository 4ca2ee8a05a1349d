"""In-process TTL cache for read-heavy API responses."""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, TypedDict

from campaign_api.resilience.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class InvalidPatternError(ValueError):
    """Raised when an invalidation pattern is not a valid regular expression."""


class CacheStats(TypedDict):
    size: int
    keys: list[str]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Expiring key-value store with lazy and periodic reclamation.

    Expired entries are never returned: ``get`` and ``has`` drop an expired
    entry when they see it, and a background sweep removes the rest every
    ``sweep_interval_seconds`` once ``start_sweeper`` has been called.

    Example:
        >>> cache = TTLCache()
        >>> cache.set("campaigns:page=1", {"items": []}, ttl_seconds=60)
        >>> cache.get("campaigns:page=1")
        {'items': []}
        >>> cache.invalidate_pattern("^campaigns:")
        1
    """

    def __init__(
        self,
        default_ttl_seconds: int = 300,
        sweep_interval_seconds: float = 60.0,
        clock: Clock | None = None,
    ) -> None:
        """Create an empty cache.

        Args:
            default_ttl_seconds: TTL applied when ``set`` is called without one
            sweep_interval_seconds: Delay between background sweeps
            clock: Time source; ``SystemClock`` unless a test injects one
        """
        self._entries: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock: Clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task[None] | None = None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        entry = CacheEntry(value=value, expires_at=self._clock.time() + ttl)
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Any | None:
        """Return the live value for ``key``, or None if absent or expired."""
        with self._lock:
            entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def has(self, key: str) -> bool:
        """Return True if ``key`` holds a live entry (drops it if expired)."""
        with self._lock:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether an entry was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str) -> int:
        """Remove every key matched by the regular expression ``pattern``.

        The pattern is searched anywhere in the key, so anchor it (``^campaigns:``)
        to match a prefix.

        Raises:
            InvalidPatternError: If ``pattern`` does not compile
        """
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise InvalidPatternError(f"Invalid cache key pattern {pattern!r}: {exc}") from exc

        with self._lock:
            snapshot = list(self._entries)
            matched = [key for key in snapshot if regex.search(key)]
            for key in matched:
                del self._entries[key]
        return len(matched)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        """Return the raw entry count and keys, including expired-but-unswept entries."""
        with self._lock:
            keys = list(self._entries)
        return {"size": len(keys), "keys": keys}

    def sweep(self) -> int:
        """Delete every expired entry; return how many were removed."""
        now = self._clock.time()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the periodic background sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def destroy(self) -> None:
        """Stop the sweeper and drop all entries. Safe to call more than once."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
        self.clear()

    async def _sweep_loop(self) -> None:
        while True:
            await self._clock.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Cache sweep failed")

    def _live_entry(self, key: str) -> CacheEntry | None:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock.time() > entry.expires_at:
            del self._entries[key]
            return None
        return entry
