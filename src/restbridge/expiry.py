"""Detection of 401 responses caused by an expired or invalid access token.

A 401 can mean many things; only some of them are fixed by fetching a new
token. Gateways report token problems in different shapes, so detection is an
ordered list of detectors. Each detector inspects the decoded JSON body and
returns True (token expired), False (a token-unrelated error) or None (this
detector does not recognize the body). The first non-None verdict wins.
"""

from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from .log_config import logger


class ExpiryDetector(Protocol):
    """Protocol for a single expired-token heuristic."""

    def __call__(self, body: dict[str, Any]) -> bool | None: ...


class ErrorCodeDetector:
    """Recognizes OAuth-style ``error`` fields.

    Handles both ``{"error": "invalid_grant"}`` and the nested
    ``{"error": {"code": "invalid_token"}}`` shape.
    """

    def __init__(self, codes: Sequence[str] = ("invalid_grant", "invalid_token")):
        self.codes = frozenset(codes)

    def __call__(self, body: dict[str, Any]) -> bool | None:
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("code")
        if error is None:
            return None
        return isinstance(error, str) and error in self.codes


class FaultStringDetector:
    """Recognizes Apigee-style ``{"fault": {"faultstring": ...}}`` bodies.

    Fault strings are compared case-insensitively.
    """

    def __init__(
        self,
        messages: Sequence[str] = ("invalid access token", "access token expired"),
    ):
        self.messages = frozenset(message.lower() for message in messages)

    def __call__(self, body: dict[str, Any]) -> bool | None:
        fault = body.get("fault")
        if fault is None:
            return None
        faultstring = fault.get("faultstring", "") if isinstance(fault, dict) else ""
        return str(faultstring).lower() in self.messages


DEFAULT_EXPIRY_DETECTORS: tuple[ExpiryDetector, ...] = (
    ErrorCodeDetector(),
    FaultStringDetector(),
)


def is_expired_token(
    response: httpx.Response,
    detectors: Sequence[ExpiryDetector] = DEFAULT_EXPIRY_DETECTORS,
) -> bool:
    """Decide whether ``response`` rejected the request because of its token.

    Args:
        response: The response to inspect.
        detectors: Heuristics to consult, in order.

    Returns:
        bool: True only for a 401 whose body a detector identifies as an
            expired or invalid token. Bodies that are not JSON objects are
            never considered expired.
    """
    if response.status_code != httpx.codes.UNAUTHORIZED:
        return False

    try:
        body = response.json()
    except ValueError:
        logger.debug("401 response body is not JSON; not treating it as token expiry.")
        return False
    if not isinstance(body, dict):
        return False

    for detector in detectors:
        verdict = detector(body)
        if verdict is not None:
            return verdict
    return False
