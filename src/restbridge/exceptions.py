"""Custom exception classes for the restbridge client."""

import httpx


class RestBridgeError(Exception):
    """Base exception class for all restbridge errors."""

    def __init__(
        self,
        message: str,
        *,
        response: httpx.Response | None = None,
        request: httpx.Request | None = None,
    ):
        """Initializes the base exception.

        Args:
            message: The error message.
            response: Optional httpx.Response object associated with the error.
            request: Optional httpx.Request object associated with the error.
        """
        super().__init__(message)
        self.message = message
        self.response = response
        self.request = request

    def __str__(self) -> str:
        if self.response is not None:
            url_info = "N/A"
            try:
                url_info = str(self.response.request.url)
            except RuntimeError:
                # httpx raises when a response was built without a request
                pass
            return (
                f"{self.message} (Status: {self.response.status_code}, URL: {url_info})"
            )
        if isinstance(self.request, httpx.Request):
            return f"{self.message} (URL: {self.request.url})"
        return self.message


class APIError(RestBridgeError):
    """Represents a generic error returned by an API (non-specific 4xx/5xx)."""


class ValidationError(RestBridgeError):
    """Represents invalid input supplied to the client by its caller."""


class UnknownHandleError(ValidationError, ValueError):
    """Raised when end() receives a handle that is unknown or already consumed."""

    def __init__(self, handle: str):
        super().__init__(f"Handle not found: {handle!r}")
        self.handle = handle


class ResponseDecodeError(RestBridgeError):
    """Raised when a response body cannot be decoded as JSON."""


class TimeoutError(RestBridgeError):
    """Represents a request timeout error.

    This error is raised when an HTTP request does not complete within the configured timeout.
    """

    def __init__(self, message: str, *, request: httpx.Request | None = None):
        super().__init__(message, request=request, response=None)


class NetworkError(RestBridgeError):
    """Represents a network connection error (e.g., DNS resolution failure, connection refused)."""

    def __init__(self, message: str, *, request: httpx.Request | None = None):
        super().__init__(message, request=request, response=None)


class ConfigurationError(RestBridgeError):
    """Represents an error in the client's configuration."""

    def __init__(self, message: str):
        # Configuration errors typically don't have an HTTP response
        super().__init__(message, response=None)


class AuthError(RestBridgeError):
    """Raised when an authentication error occurs, e.g., fetching a token fails."""


class InvalidCredentialsError(AuthError):
    """Raised when the token endpoint rejects the client credentials."""


class RestBridgeRequestError(RestBridgeError):
    """Represents an error during the HTTP request process itself.

    Covers transport failures that are neither timeouts nor plain network errors.
    """
