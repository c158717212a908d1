# restbridge/models.py
"""Core protocols and interfaces for restbridge.

The client never performs network I/O or storage itself. It talks to a
transport adapter, a cache store and an authentication provider through the
protocols defined here (the authentication protocol lives in ``auth``), so
any object with matching methods can be plugged in.
"""

from typing import Any, Protocol, runtime_checkable

import httpx

from .types import Request


@runtime_checkable
class TransportAdapter(Protocol):
    """Two-phase interface to whatever actually sends requests.

    ``start`` hands a request to the transport and returns an opaque handle
    immediately (or after blocking, at the adapter's discretion). ``end``
    blocks until the exchange identified by the handle has completed and
    returns its response. Handles must be unique among the adapter's
    currently outstanding handles.

    Example:
        ```python
        handle = adapter.start(Request(method="GET", url="https://api/x"))
        response = adapter.end(handle)
        ```
    """

    def start(self, request: Request) -> str:
        """Begin sending ``request`` and return an opaque handle for it.

        Args:
            request: The fully built request, headers included.

        Returns:
            str: Handle to pass to ``end``.
        """
        ...

    def end(self, handle: str) -> httpx.Response:
        """Wait for the exchange started under ``handle`` and return its response.

        Args:
            handle: A handle previously returned by ``start``.

        Returns:
            httpx.Response: The completed response.

        Raises:
            Any transport failure. Errors are surfaced unchanged to callers of
            the client.
        """
        ...


@runtime_checkable
class CacheStore(Protocol):
    """Minimal key/value store the client caches responses and tokens in.

    Values are opaque to the client. ``ttl`` is a lifetime in seconds; None
    means the store's own default.
    """

    def get(self, key: str) -> Any | None:
        """Return the value stored under ``key``, or None when absent or expired."""
        ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store ``value`` under ``key``."""
        ...
