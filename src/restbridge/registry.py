"""Registry of in-flight logical requests.

Every ``start_*`` call on the client registers exactly one outcome here and
hands the caller the handle it was stored under; ``end`` resolves the handle
exactly once. Handles are generated by the registry itself, never borrowed
from the transport adapter, so cache-served and adapter-served requests can
not collide.
"""

import uuid
from dataclasses import dataclass

import httpx

from .exceptions import UnknownHandleError
from .types import Request


@dataclass(frozen=True)
class CachedOutcome:
    """A request answered from the cache without touching the transport."""

    request: Request
    response: httpx.Response


@dataclass(frozen=True)
class LiveOutcome:
    """A request handed to the transport adapter under ``adapter_handle``."""

    request: Request
    adapter_handle: str


PendingRequest = CachedOutcome | LiveOutcome


class HandleRegistry:
    """Maps opaque handles to pending request outcomes.

    Not thread-safe; a client and its registry belong to a single owner.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def register(self, outcome: PendingRequest) -> str:
        """Store ``outcome`` and return the new handle identifying it."""
        handle = uuid.uuid4().hex
        self._pending[handle] = outcome
        return handle

    def resolve(self, handle: str) -> PendingRequest:
        """Remove and return the outcome stored under ``handle``.

        Raises:
            UnknownHandleError: If the handle was never issued or was
                already resolved.
        """
        try:
            return self._pending.pop(handle)
        except KeyError:
            raise UnknownHandleError(handle) from None

    def __contains__(self, handle: object) -> bool:
        return handle in self._pending

    def __len__(self) -> int:
        return len(self._pending)
