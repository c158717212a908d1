"""restbridge: Synchronous OAuth API client with a two-phase request protocol.

This package provides a client for resource-oriented HTTP APIs that keeps an
OAuth bearer/refresh token pair up to date on its own, refreshes and resends
requests rejected because of an expired token, and optionally caches GET
responses and token exchanges.

Requests run in two phases: ``start_*`` returns an opaque handle right away
and ``end(handle)`` returns the response, so several requests can be in flight
at once over the pluggable transport adapter.
"""

__version__ = "0.1.0"

from . import (
    adapters,
    auth,
    cache,
    client,
    collection,
    config,
    exceptions,
    expiry,
    log_config,
    models,
    policy,
    registry,
    response,
    tokens,
    types,
)
from .client import Client
from .types import CacheMode

__all__ = [
    "__version__",
    "CacheMode",
    "Client",
    "adapters",
    "auth",
    "cache",
    "client",
    "collection",
    "config",
    "exceptions",
    "expiry",
    "log_config",
    "models",
    "policy",
    "registry",
    "response",
    "tokens",
    "types",
]
