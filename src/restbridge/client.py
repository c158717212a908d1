"""Request orchestration for the restbridge client.

This module provides :class:`Client`, which turns resource-oriented calls
(index, get, post, put, delete, arbitrary send) into authenticated HTTP
requests and drives them through a two-phase protocol:

- ``start_*`` builds the request, makes sure a bearer token is held, answers
  from the cache when the cache policy allows, and otherwise hands the
  request to the transport adapter. It returns an opaque handle at once.
- ``end(handle)`` waits for the outcome, transparently refreshes the token
  and resends the request once when the API reports an expired token,
  stores the result in the cache when allowed, and returns a normalized
  :class:`~restbridge.response.Response`.

Starting several requests before ending any of them lets the adapter send
them concurrently. The blocking shorthands (``index``, ``get``, ...) simply
call ``end(start_*(...))``.
"""

import json
from collections.abc import Mapping, Sequence
from typing import Any, Self
from urllib.parse import quote_plus, urlencode

from .adapters import HttpxAdapter
from .auth import AuthenticationProvider, create_authentication
from .cache import MemoryCache, NullCache, get_cache_key
from .config import ClientSettings, get_settings
from .exceptions import ConfigurationError
from .expiry import DEFAULT_EXPIRY_DETECTORS, ExpiryDetector, is_expired_token
from .log_config import logger
from .models import CacheStore, TransportAdapter
from .policy import CachePolicy
from .registry import CachedOutcome, HandleRegistry, LiveOutcome
from .response import Response
from .tokens import TokenManager
from .types import CacheMode, Request, TokenPair

JSON_CONTENT_TYPE = "application/json"


def build_query_string(params: Mapping[str, Any]) -> str:
    """Encode ``params`` as a query string.

    Sequence values become repeated parameters (``a=1&a=2``) and booleans
    are written as ``true``/``false``.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        values = value if isinstance(value, list | tuple) else [value]
        for item in values:
            if isinstance(item, bool):
                item = "true" if item else "false"
            pairs.append((str(key), str(item)))
    return urlencode(pairs)


def _merge_headers(*layers: Mapping[str, str]) -> dict[str, str]:
    """Merge header mappings; later layers win, names compared case-insensitively."""
    merged: dict[str, str] = {}
    for layer in layers:
        for name, value in layer.items():
            for existing in [k for k in merged if k.lower() == name.lower()]:
                del merged[existing]
            merged[name] = value
    return merged


class Client:
    """Client for resource-oriented APIs protected by OAuth bearer tokens.

    The client is not thread-safe. It is meant to be driven by one owner,
    which may interleave any number of start/end pairs.

    Attributes:
        _adapter: Transport adapter performing the actual I/O.
        _base_url: The base URL for API requests.
        _cache: Store for cached responses and tokens.
        _policy: Cache decisions derived from the configured cache mode.
        _tokens: Manager of the bearer/refresh token pair.
        _registry: Outstanding requests keyed by handle.
        _default_headers: Headers sent with every request unless overridden.
        _expiry_detectors: Heuristics identifying expired-token responses.
        _owns_adapter: Whether ``close`` should close the adapter.
    """

    def __init__(
        self,
        adapter: TransportAdapter,
        authentication: AuthenticationProvider,
        base_url: str,
        cache_mode: CacheMode | int = CacheMode.NONE,
        cache: CacheStore | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        *,
        expiry_detectors: Sequence[ExpiryDetector] = DEFAULT_EXPIRY_DETECTORS,
    ):
        """Initialize the Client.

        Args:
            adapter: Transport adapter for sending requests to the API.
            authentication: OAuth token provider.
            base_url: Base URL of the API server.
            cache_mode: Strategy for caching, one of the CacheMode values.
            cache: Storage for cached API responses and tokens. Defaults to a
                NullCache, which stores nothing.
            access_token: Initial access token, e.g. from a previous session.
            refresh_token: Initial refresh token.
            expiry_detectors: Ordered heuristics used to recognize 401
                responses caused by an expired token.

        Raises:
            ConfigurationError: If ``cache_mode`` is not a valid CacheMode value.
        """
        if isinstance(cache_mode, bool) or not isinstance(cache_mode, int):
            raise ConfigurationError("cache_mode must be a valid CacheMode value")
        try:
            mode = CacheMode(cache_mode)
        except ValueError as e:
            raise ConfigurationError(
                f"cache_mode must be a valid CacheMode value, got {cache_mode!r}"
            ) from e

        self._adapter = adapter
        self._base_url: str = base_url.rstrip("/")
        self._cache: CacheStore = cache if cache is not None else NullCache()
        self._policy = CachePolicy(mode)
        self._tokens = TokenManager(
            adapter,
            authentication,
            self._base_url,
            self._cache,
            self._policy,
            access_token=access_token,
            refresh_token=refresh_token,
        )
        self._registry = HandleRegistry()
        self._default_headers: dict[str, str] = {}
        self._expiry_detectors = tuple(expiry_detectors)
        self._owns_adapter = False

        logger.info(
            f"Client initialized for {self._base_url} with cache mode {mode.name} "
            f"and {type(self._cache).__name__}."
        )

    @classmethod
    def from_settings(
        cls, settings: ClientSettings | None = None, *, cache: CacheStore | None = None
    ) -> Self:
        """Build a client, its HttpxAdapter and authentication from settings.

        When the cache mode enables caching and no cache is given, an
        in-memory cache sized by the settings is created.

        Raises:
            ConfigurationError: If the base URL or required credentials are missing.
        """
        settings = settings or get_settings()
        if not settings.base_url:
            raise ConfigurationError("A base_url must be configured.")

        authentication = create_authentication(settings)
        if cache is None and settings.cache_mode is not CacheMode.NONE:
            cache = MemoryCache(
                maxsize=settings.cache_max_size,
                default_ttl=settings.cache_ttl_seconds,
            )

        client = cls(
            HttpxAdapter(settings),
            authentication,
            settings.base_url,
            settings.cache_mode,
            cache,
        )
        client._owns_adapter = True
        return client

    @property
    def cache_mode(self) -> CacheMode:
        return self._policy.mode

    def get_tokens(self) -> TokenPair:
        """Get access token and refresh token."""
        return self._tokens.tokens

    def set_default_headers(self, default_headers: Mapping[str, str]) -> None:
        """Set headers sent on every request unless the caller overrides them."""
        self._default_headers = dict(default_headers)

    def start_index(self, resource: str, filters: Mapping[str, Any] | None = None) -> str:
        """Search the API resource using the specified filters.

        Returns:
            str: Opaque handle to be given to end().
        """
        url = f"{self._base_url}/{quote_plus(resource)}?{build_query_string(filters or {})}"
        return self._start("GET", url)

    def index(self, resource: str, filters: Mapping[str, Any] | None = None) -> Response:
        return self.end(self.start_index(resource, filters))

    def start_get(
        self, resource: str, id: str, parameters: Mapping[str, Any] | None = None
    ) -> str:
        """Get the details of an API resource by id."""
        url = f"{self._base_url}/{quote_plus(resource)}/{quote_plus(id)}"
        if parameters:
            url += f"?{build_query_string(parameters)}"
        return self._start("GET", url)

    def get(
        self, resource: str, id: str, parameters: Mapping[str, Any] | None = None
    ) -> Response:
        return self.end(self.start_get(resource, id, parameters))

    def start_post(self, resource: str, data: Any) -> str:
        """Create a new instance of an API resource from ``data``."""
        url = f"{self._base_url}/{quote_plus(resource)}"
        return self._start("POST", url, *self._json_body(data))

    def post(self, resource: str, data: Any) -> Response:
        return self.end(self.start_post(resource, data))

    def start_put(self, resource: str, id: str, data: Any) -> str:
        """Update the API resource instance ``id`` with ``data``."""
        url = f"{self._base_url}/{quote_plus(resource)}/{quote_plus(id)}"
        return self._start("PUT", url, *self._json_body(data))

    def put(self, resource: str, id: str, data: Any) -> Response:
        return self.end(self.start_put(resource, id, data))

    def start_delete(
        self, resource: str, id: str | None = None, data: Any | None = None
    ) -> str:
        """Delete an API resource, or the instance ``id`` of it.

        A body is sent only when ``data`` is given.
        """
        url = f"{self._base_url}/{quote_plus(resource)}"
        if id is not None:
            url += f"/{quote_plus(id)}"
        return self._start("DELETE", url, *self._json_body(data))

    def delete(
        self, resource: str, id: str | None = None, data: Any | None = None
    ) -> Response:
        return self.end(self.start_delete(resource, id, data))

    def start_send(self, method: str, uri: str, data: Any | None = None) -> str:
        """Start a request with any method to ``uri``, taken verbatim relative to the base URL."""
        url = f"{self._base_url}/{uri}"
        return self._start(method, url, *self._json_body(data))

    def send(self, method: str, uri: str, data: Any | None = None) -> Response:
        return self.end(self.start_send(method, uri, data))

    def end(self, handle: str) -> Response:
        """Get the response of a request started by one of the start_* methods.

        Args:
            handle: Opaque handle returned by start_*().

        Returns:
            Response: The normalized response.

        Raises:
            UnknownHandleError: If the handle is unknown or was already ended.
            AuthError: If refreshing an expired token fails.
        """
        outcome = self._registry.resolve(handle)

        if isinstance(outcome, CachedOutcome):
            return Response.from_httpx(outcome.response)

        assert isinstance(outcome, LiveOutcome)
        request = outcome.request
        response = self._adapter.end(outcome.adapter_handle)

        if is_expired_token(response, self._expiry_detectors):
            logger.info(
                f"Access token rejected for {request.method} {request.url}; refreshing and resending."
            )
            self._tokens.refresh()
            request = self._tokens.authorize(request)
            response = self._adapter.end(self._adapter.start(request))

        if response.is_success and self._policy.should_write_response(request):
            self._cache.set(get_cache_key(request), response)
            logger.debug(f"Cached response for {request.method} {request.url}")

        return Response.from_httpx(response)

    def _start(
        self,
        method: str,
        url: str,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        request = Request(
            method=method,
            url=url,
            headers=_merge_headers(
                self._default_headers, headers or {}, {"Accept-Encoding": "gzip"}
            ),
            body=body,
        )
        self._tokens.ensure_token()
        request = self._tokens.authorize(request)

        if self._policy.should_read_response(request):
            cached = self._cache.get(get_cache_key(request))
            if cached is not None:
                logger.debug(f"Cache hit for {method} {url}")
                return self._registry.register(CachedOutcome(request, cached))

        adapter_handle = self._adapter.start(request)
        return self._registry.register(LiveOutcome(request, adapter_handle))

    @staticmethod
    def _json_body(data: Any | None) -> tuple[str | None, dict[str, str]]:
        if data is None:
            return None, {}
        body = json.dumps(data, separators=(",", ":"))
        return body, {"Content-Type": JSON_CONTENT_TYPE}

    def close(self) -> None:
        """Close the transport adapter if this client created it."""
        if self._owns_adapter and hasattr(self._adapter, "close"):
            self._adapter.close()  # type: ignore[attr-defined]
            logger.debug("Client closed its transport adapter.")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        self.close()
