"""Cache stores and cache-key derivation for restbridge.

Two stores satisfy the :class:`~restbridge.models.CacheStore` protocol:

- :class:`NullCache` stores nothing and is the client's default.
- :class:`MemoryCache` is a bounded in-process store with a lifetime per
  entry, backed by :class:`cachetools.TLRUCache`.

Keys come from :func:`get_cache_key`, which is a pure function of the
request and therefore stable across processes, so any external store
(Redis, a database, ...) that offers ``get``/``set`` can be used as well.
"""

import threading
import time
from typing import Any, NamedTuple

from cachetools import TLRUCache  # type: ignore[import-untyped]

from .log_config import logger
from .types import Request

CACHE_KEY_RESERVED_CHARS: dict[str, str] = {
    "{": "_LBRACE_",
    "}": "_RBRACE_",
    "(": "_LPAREN_",
    ")": "_RPAREN_",
    "/": "_FSLASH_",
    "\\": "_BSLASH_",
    "@": "_AT_",
    ":": "_COLON_",
}
"""Characters that are reserved in cache keys and their replacements."""


def get_cache_key(request: Request) -> str:
    """Derive a deterministic cache key from a request.

    The key is ``METHOD|URL|BODY`` with reserved characters replaced, e.g.
    ``GET|baseUrl_FSLASH_a+url_FSLASH_id|``. Headers are not part of the key,
    so requests that differ only in their bearer token share an entry.

    Args:
        request: The request to derive the key for.

    Returns:
        str: The cache key.
    """
    key = f"{request.method}|{request.url}|{request.body or ''}"
    for char, replacement in CACHE_KEY_RESERVED_CHARS.items():
        key = key.replace(char, replacement)
    return key


class NullCache:
    """Cache store that never stores anything."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        return None


class _Entry(NamedTuple):
    value: Any
    ttl: float | None


class MemoryCache:
    """In-memory cache store with a time-to-live per entry.

    Attributes:
        _default_ttl: Lifetime in seconds for entries stored without a ttl.
            None keeps such entries until they are evicted for space.
        _store: The underlying TLRU cache.
        _lock: Guards the store, which is not thread-safe on its own.
    """

    def __init__(
        self,
        maxsize: int = 128,
        default_ttl: float | None = None,
        timer=time.monotonic,
    ):
        self._default_ttl = default_ttl
        self._store: TLRUCache = TLRUCache(  # type: ignore[type-arg]
            maxsize=maxsize, ttu=self._time_to_use, timer=timer
        )
        self._lock = threading.Lock()
        logger.debug(
            f"MemoryCache initialized. Max size: {maxsize}, default TTL: {default_ttl}"
        )

    def _time_to_use(self, key: str, entry: _Entry, now: float) -> float:
        ttl = entry.ttl if entry.ttl is not None else self._default_ttl
        if ttl is None:
            return float("inf")
        return now + ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        with self._lock:
            self._store[key] = _Entry(value, ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
