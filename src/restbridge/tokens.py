"""Bearer token lifecycle for the restbridge client.

The :class:`TokenManager` owns the access/refresh token pair of one client.
It obtains a token lazily before the first request, reuses a token from the
cache when the cache policy allows it, and performs the refresh exchange the
client asks for after detecting an expired token.

Token exchanges are sent through the same transport adapter as API
requests, synchronously: ``adapter.end(adapter.start(token_request))``.
"""

from enum import Enum

import httpx

from .auth import AuthenticationProvider
from .cache import get_cache_key
from .log_config import logger
from .models import CacheStore, TransportAdapter
from .policy import CachePolicy
from .types import Request, TokenPair


class TokenState(Enum):
    """Where a TokenManager is in its lifecycle."""

    NO_TOKEN = "no_token"
    ACQUIRING = "acquiring"
    ACTIVE = "active"
    REFRESHING = "refreshing"


class TokenManager:
    """Owns and maintains a client's bearer token pair.

    Attributes:
        _adapter: Transport used for token exchanges.
        _authentication: Builds token requests and parses their responses.
        _base_url: Base URL handed to the authentication provider.
        _cache: Store token responses are cached in, subject to ``_policy``.
        _policy: Decides whether tokens are read from or written to the cache.
        _access_token: The current access token, if any.
        _refresh_token: The current refresh token, if any.
        _state: Current lifecycle state.
    """

    def __init__(
        self,
        adapter: TransportAdapter,
        authentication: AuthenticationProvider,
        base_url: str,
        cache: CacheStore,
        policy: CachePolicy,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ):
        self._adapter = adapter
        self._authentication = authentication
        self._base_url = base_url
        self._cache = cache
        self._policy = policy
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._state = TokenState.ACTIVE if access_token is not None else TokenState.NO_TOKEN

    @property
    def tokens(self) -> TokenPair:
        return TokenPair(self._access_token, self._refresh_token)

    @property
    def state(self) -> TokenState:
        return self._state

    def ensure_token(self) -> str:
        """Return the current access token, obtaining one first if none is held.

        A cached token response is used when the policy allows token reads;
        otherwise a token exchange is performed.

        Raises:
            AuthError: If the token exchange fails. Transport errors from the
                adapter propagate unchanged.
        """
        if self._access_token is None:
            self._load_from_cache()

        if self._access_token is None:
            self._exchange(TokenState.ACQUIRING)

        assert self._access_token is not None
        return self._access_token

    def refresh(self) -> str:
        """Replace the current token pair with a freshly obtained one."""
        logger.info("Refreshing access token.")
        self._exchange(TokenState.REFRESHING)
        assert self._access_token is not None
        return self._access_token

    def authorize(self, request: Request) -> Request:
        """Return ``request`` carrying the current bearer token."""
        return request.with_header("Authorization", f"Bearer {self._access_token}")

    def _load_from_cache(self) -> None:
        if not self._policy.should_read_token():
            return

        token_request = self._authentication.build_token_request(
            self._base_url, self._refresh_token
        )
        cached = self._cache.get(get_cache_key(token_request))
        if cached is None:
            logger.debug("No cached token response found.")
            return

        grant = self._authentication.parse_token_response(cached)
        self._access_token = grant.access_token
        self._refresh_token = grant.refresh_token
        self._state = TokenState.ACTIVE
        logger.debug("Loaded access token from cache.")

    def _exchange(self, transitional_state: TokenState) -> None:
        previous_state = self._state
        self._state = transitional_state
        token_request = self._authentication.build_token_request(
            self._base_url, self._refresh_token
        )
        logger.debug(f"Requesting access token: {token_request.method} {token_request.url}")
        try:
            response: httpx.Response = self._adapter.end(self._adapter.start(token_request))
            grant = self._authentication.parse_token_response(response)
        except Exception:
            self._state = previous_state
            raise

        self._access_token = grant.access_token
        self._refresh_token = grant.refresh_token
        self._state = TokenState.ACTIVE
        logger.debug(f"Obtained access token, expires in {grant.expires_in}s.")

        if self._policy.should_write_token():
            self._cache.set(get_cache_key(token_request), response, grant.expires_in)
            logger.debug("Cached token response.")
