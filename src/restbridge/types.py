# restbridge/types.py
"""Core type definitions and data structures for restbridge.

This module defines the value types shared by the client and its
collaborators: the cache mode flags, the outgoing request model, and the
token tuples produced by authentication providers.
"""

from enum import IntEnum
from typing import NamedTuple

import httpx
from pydantic import BaseModel, ConfigDict, Field


class CacheMode(IntEnum):
    """Strategy for caching API traffic.

    ``GET``, ``TOKEN`` and ``ALL`` behave as bit flags (``ALL == GET | TOKEN``).
    ``REFRESH`` is a standalone value: GET responses are always fetched live
    and then written to the cache.
    """

    NONE = 0
    GET = 1
    TOKEN = 2
    ALL = 3
    REFRESH = 4

    def has(self, flag: "CacheMode") -> bool:
        """Return True if ``flag``'s bit is set in this mode."""
        return bool(self & flag)


class Request(BaseModel):
    """Encapsulates a single outgoing HTTP request."""

    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None

    model_config = ConfigDict(frozen=True)

    def with_header(self, name: str, value: str) -> "Request":
        """Return a copy with ``name`` set to ``value``, replacing any casing of it."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return self.model_copy(update={"headers": headers})

    def build_request(self, client: httpx.Client | None = None) -> httpx.Request:
        """Builds an httpx.Request object from the stored data.

        When ``client`` is given, the request is built through it so that the
        client's default headers and timeout apply.
        """
        content = self.body.encode("utf-8") if self.body is not None else None
        if client is not None:
            return client.build_request(
                self.method, self.url, headers=self.headers, content=content
            )
        return httpx.Request(
            method=self.method, url=self.url, headers=self.headers, content=content
        )


class TokenPair(NamedTuple):
    """The access/refresh token pair currently held by a client."""

    access_token: str | None
    refresh_token: str | None


class TokenGrant(NamedTuple):
    """A parsed token response."""

    access_token: str
    refresh_token: str | None
    expires_in: int
