"""Expiring-key cache — TTL per entry, bounded size, oldest evicted first.

Used for futures snapshots (5 min) and duplicate-signal suppression.
The clock is injectable so expiry can be driven from tests.
"""

import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional


class ExpiringCache:
    """Mapping whose entries disappear *ttl_seconds* after insertion.

    Args:
        ttl_seconds: Default lifetime of an entry.
        max_size: Maximum number of live entries.  Inserting beyond it
            evicts the oldest insertion.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or ``None`` if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + ttl, value)
        self.purge_expired()
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def add_if_absent(self, key: Hashable, value: Any = True) -> bool:
        """Insert *key* unless a live entry exists.  Returns ``True`` if inserted."""
        if key in self:
            return False
        self.set(key, value)
        return True

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        stale = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._entries)
