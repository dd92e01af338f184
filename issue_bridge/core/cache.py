"""In-memory result cache for tracker responses.

Entries are keyed by a request fingerprint and hold either the response data
or the message of the error the request ended with, so a failing query is not
re-sent on every render until it expires or is refreshed.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from issue_bridge.core.durations import humanize_age
from issue_bridge.core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)

DEFAULT_TTL_MS = 15 * 60 * 1000  # 15 minutes


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry:
    """Cached outcome of one logical request.

    Exactly one of ``data`` and ``error_message`` is meaningful, selected by
    ``is_error``.
    """
    data: Any = None
    error_message: Optional[str] = None
    is_error: bool = False
    timestamp_ms: float = 0.0
    status: int = 0             # HTTP status of a cached error, 0 if none

    @property
    def value(self) -> Any:
        """The cached data, or the error message for error entries."""
        return self.error_message if self.is_error else self.data


class ResultCache:
    """Process-wide fingerprint -> CacheEntry mapping with lazy expiration.

    Expiration is checked on read; there is no background sweep. Concurrent
    writers to the same fingerprint follow last-write-wins.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS,
                 clock: Callable[[], float] = _now_ms):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        """Get a live entry, or None when missing or older than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            log_cache_operation(logger, "get", key, hit=False)
            return None

        if self._clock() - entry.timestamp_ms > self.ttl_ms:
            del self._entries[key]
            log_cache_operation(logger, "get", key, hit=False, expired=True)
            return None

        log_cache_operation(logger, "get", key, hit=True, is_error=entry.is_error)
        return entry

    def add(self, key: str, data: Any, is_error: bool = False,
            status: int = 0) -> CacheEntry:
        """Store or overwrite the entry for ``key`` and return it.

        ``status`` is kept on error entries so a replayed error reports the
        same HTTP status as the original failure.
        """
        if is_error:
            message = data if isinstance(data, str) else str(data)
            entry = CacheEntry(error_message=message, is_error=True,
                               timestamp_ms=self._clock(), status=status)
        else:
            entry = CacheEntry(data=data, timestamp_ms=self._clock())
        self._entries[key] = entry
        log_cache_operation(logger, "set", key, is_error=is_error)
        return entry

    def delete(self, key: str) -> bool:
        """Invalidate one entry. Returns whether it existed."""
        deleted = self._entries.pop(key, None) is not None
        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    def clear_prefix(self, prefix: str) -> int:
        """Invalidate every entry whose key starts with ``prefix``."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        log_cache_operation(logger, "clear_prefix", prefix, deleted=len(keys))
        return len(keys)

    def clear(self) -> int:
        """Drop every entry."""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Result cache cleared", entries=count)
        return count

    def get_time(self, key: str) -> str:
        """Human readable age of a cached entry, "Never" if not cached."""
        entry = self.get(key)
        if entry is None:
            return "Never"
        return humanize_age(self._clock() - entry.timestamp_ms)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
