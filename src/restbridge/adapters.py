"""Transport adapters for the restbridge client.

:class:`HttpxAdapter` implements the two-phase
:class:`~restbridge.models.TransportAdapter` protocol on top of
:class:`httpx.Client`. ``start`` submits the request to a thread pool and
returns immediately, so several requests started before their ``end`` calls
are sent concurrently. ``end`` blocks until the response is available.

Transport failures (timeouts, connection problems) are retried with
exponential backoff before they are surfaced to the caller. HTTP error
statuses are not errors at this layer; they are returned as responses.
"""

import ssl
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Self

import certifi
import httpx
import tenacity
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import ClientSettings
from .exceptions import (
    NetworkError,
    RestBridgeRequestError,
    TimeoutError,
    UnknownHandleError,
)
from .log_config import logger
from .types import Request


class HttpxAdapter:
    """Concurrent transport adapter backed by httpx.

    Attributes:
        _settings: Timeout, retry, user agent and pool size configuration.
        _http_client: The underlying httpx.Client, shared by all worker threads.
        _should_close_client: Flag indicating if this instance owns the _http_client.
        _executor: Pool the started requests run on.
        _futures: Outstanding requests keyed by handle.
        _lock: Guards ``_futures``.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.Client | None = None,
    ):
        self._settings = settings or ClientSettings()
        self._should_close_client = http_client is None  # Close only if we created it
        self._http_client = http_client or self._create_default_http_client()
        self._executor = ThreadPoolExecutor(
            max_workers=self._settings.max_workers, thread_name_prefix="restbridge"
        )
        self._futures: dict[str, Future[httpx.Response]] = {}
        self._lock = threading.Lock()
        logger.debug(
            f"HttpxAdapter initialized with {self._settings.max_workers} workers."
        )

    def _create_default_http_client(self) -> httpx.Client:
        """Create a default httpx.Client with configured settings."""
        try:
            verify_ssl: ssl.SSLContext | bool = ssl.create_default_context(
                cafile=certifi.where()
            )
            logger.debug("Using certifi SSL context.")
        except (OSError, ssl.SSLError):
            verify_ssl = True
            logger.warning(
                "certifi bundle failed to load. Using default SSL verification."
            )

        return httpx.Client(
            timeout=self._settings.request_timeout,
            verify=verify_ssl,
            headers={"User-Agent": self._settings.user_agent},
        )

    def start(self, request: Request) -> str:
        """Submit ``request`` for sending and return its handle."""
        handle = uuid.uuid4().hex
        future = self._executor.submit(self._send_with_retry, request)
        with self._lock:
            self._futures[handle] = future
        logger.trace(f"Started {request.method} {request.url} as {handle}")
        return handle

    def end(self, handle: str) -> httpx.Response:
        """Block until the request started under ``handle`` completes.

        Raises:
            UnknownHandleError: If ``handle`` is not outstanding.
            TimeoutError: If the request timed out on every attempt.
            NetworkError: If the connection failed on every attempt.
            RestBridgeRequestError: For other transport failures.
        """
        with self._lock:
            future = self._futures.pop(handle, None)
        if future is None:
            raise UnknownHandleError(handle)
        return future.result()

    def _send_with_retry(self, request: Request) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self._settings.max_retries + 1),  # +1 for initial attempt
            wait=wait_exponential(multiplier=self._settings.backoff_factor),
            retry=retry_if_exception_type((TimeoutError, NetworkError)),
            reraise=True,
            before_sleep=self._before_retry_sleep,
        )
        return retrying(self._send, request)

    def _send(self, request: Request) -> httpx.Response:
        http_request = request.build_request(self._http_client)
        logger.debug(f"Sending request: {http_request.method} {http_request.url}")
        try:
            response = self._http_client.send(http_request)
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {http_request.url}")
            raise TimeoutError("Request timed out", request=http_request) from e
        except httpx.NetworkError as e:
            logger.error(f"Network error occurred for {http_request.url}: {e}")
            raise NetworkError(
                f"Network error for {http_request.url}: {e}", request=http_request
            ) from e
        except httpx.RequestError as e:
            logger.error(f"HTTP request error for {http_request.url}: {e}")
            raise RestBridgeRequestError(
                f"HTTP request error for {http_request.url}: {e}", request=http_request
            ) from e

        logger.debug(f"Received response: {response.status_code} for {http_request.url}")
        logger.trace(f"Response Headers: {response.headers}")
        return response

    def _before_retry_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        """Log details before tenacity sleeps between retries."""
        if not retry_state.outcome:
            return

        exc = retry_state.outcome.exception()
        sleep_time = (
            getattr(retry_state.next_action, "sleep", 0)
            if retry_state.next_action
            else 0
        )
        logger.info(
            f"Retrying request in {sleep_time:.2f} seconds after "
            f"{retry_state.attempt_number} attempt(s) due to: {type(exc).__name__} - {exc}"
        )

    def close(self) -> None:
        """Wait for outstanding requests, then release the pool and HTTP client."""
        self._executor.shutdown(wait=True)
        if self._should_close_client and not self._http_client.is_closed:
            self._http_client.close()
            logger.debug("HttpxAdapter internal HTTP client closed.")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        self.close()
