"""
Time-based caching with an injectable clock.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedValue:
    """A cached value with its absolute expiry on the cache clock."""
    value: Any
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class TTLCache:
    """
    Key/value cache whose entries expire after a fixed time-to-live.

    The clock is injected so expiry can be driven deterministically.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl: Entry lifetime in seconds
            clock: Monotonic clock returning seconds
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, CachedValue] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry.value

    def set(self, key: Hashable, value: Any) -> CachedValue:
        entry = CachedValue(value=value, expires_at=self._clock() + self.ttl)
        self._entries[key] = entry
        return entry

    def invalidate(self, key: Optional[Hashable] = None):
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Optional[Any]:
        """
        Return the fresh cached value or load and cache a new one.

        When the loader fails, the last cached value (even if expired) is
        returned; with no previous value the error propagates.

        Args:
            key: Cache key
            loader: Coroutine function producing the value

        Returns:
            The cached or freshly loaded value
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            return entry.value

        try:
            value = await loader()
        except Exception as e:
            if entry is None:
                raise
            logger.warning(f"Failed to refresh cached value for {key!r}, using stale value: {e}")
            return entry.value

        self.set(key, value)
        return value
