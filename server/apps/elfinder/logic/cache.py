"""Response cache for store probes.

Memoizes (operation, path) results for a limited time. Shared by every
request of the process, so all access goes through a lock.
"""

import enum
import functools
import logging
import threading
import time
from collections.abc import Callable
from typing import Final, TypeVar, final

from django.conf import settings

logger = logging.getLogger(__name__)

_SEPARATOR: Final = '/'

_T = TypeVar('_T')


@enum.unique
class Operation(enum.StrEnum):
    """Cached adapter operations."""

    CHILDREN = 'children'
    EXIST = 'exist'
    PATH_TYPE = 'path_type'
    SIZE = 'size'
    MTIME = 'mtime'


def _normalize(path: str) -> str:
    return path.strip(_SEPARATOR)


def _matches(entry_path: str, target: str, recursive: bool) -> bool:
    normalized = _normalize(entry_path)
    if normalized == target:
        return True
    if not recursive:
        return False
    if not target:
        return True
    return normalized.startswith(target + _SEPARATOR)


@final
class ResponseCache:
    """Thread-safe memoization keyed by operation and path.

    Paths are compared without leading or trailing separators, so
    ``docs`` and ``docs/`` share invalidation.
    """

    def __init__(
        self,
        expiry_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            expiry_seconds: Age after which an entry is treated as missing.
            clock: Monotonic time source, replaceable in tests.
        """
        self._expiry_seconds = expiry_seconds
        self._clock = clock
        self._entries: dict[tuple[Operation, str], tuple[float, object]] = {}
        self._lock = threading.Lock()
        # Bumped by every clear, guards stores of values computed across one
        self._generation = 0

    def cached(
        self,
        operation: Operation,
        path: str,
        compute: Callable[[], _T],
    ) -> _T:
        """Return the memoized value or compute and store a fresh one.

        ``compute`` runs outside the lock, two requests missing the same
        entry at once may both compute it. A value computed while
        `clear_cache` ran is returned but not stored, it may predate the
        mutation that caused the clear.

        Args:
            operation: Operation the value belongs to.
            path: Path string the value was computed for.
            compute: Zero-argument callable producing the value.

        Returns:
            Cached or freshly computed value.
        """
        key = (operation, path)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                expires_at, value = entry
                if expires_at > now:
                    return value  # type: ignore[return-value]
                del self._entries[key]
            generation = self._generation

        value = compute()
        with self._lock:
            if self._generation == generation:
                self._entries[key] = (
                    self._clock() + self._expiry_seconds,
                    value,
                )
            else:
                logger.debug('Not caching %s of %r, cleared meanwhile', *key)
        return value

    def clear_cache(self, path: str, recursive: bool = True) -> None:
        """Drop entries for a path and, if recursive, its descendants.

        Expired entries of any path are dropped as well.

        Args:
            path: Path whose entries are dropped.
            recursive: Also drop entries of every path below it.
        """
        target = _normalize(path)
        now = self._clock()
        with self._lock:
            self._generation += 1
            stale = [
                key for key, (expires_at, _) in self._entries.items()
                if expires_at <= now or _matches(key[1], target, recursive)
            ]
            for key in stale:
                del self._entries[key]
        logger.debug(
            'Cleared %d cache entries for %r (recursive=%s)',
            len(stale),
            path,
            recursive,
        )

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@functools.cache
def get_response_cache() -> ResponseCache:
    """Get the process wide cache shared by all requests.

    Returns:
        ResponseCache configured from settings.
    """
    return ResponseCache(
        expiry_seconds=getattr(settings, 'ELFINDER_RESPONSE_CACHE_EXPIRY', 3000),
    )
