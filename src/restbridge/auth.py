"""OAuth2 token providers used by the client to obtain bearer tokens.

A provider knows two things: how to build the HTTP request that asks the
authorization server for a token, and how to turn the server's answer into a
:class:`~restbridge.types.TokenGrant`. It never sends anything itself; the
client routes token requests through its transport adapter so that they can
be cached and observed like any other request.
"""

from enum import Enum
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

import httpx

from .exceptions import AuthError, ConfigurationError, InvalidCredentialsError
from .log_config import logger
from .types import Request, TokenGrant

if TYPE_CHECKING:
    from .config import ClientSettings

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class AuthStrategyType(Enum):
    """Enumeration of available authentication strategy types.

    Used in configuration to specify which authentication method to use.
    """

    CLIENT_CREDENTIALS = "client_credentials"
    OWNER_CREDENTIALS = "owner_credentials"
    API_GATEWAY = "api_gateway"


class AuthenticationProvider(Protocol):
    """Protocol defining the interface for token providers."""

    def build_token_request(self, base_url: str, refresh_token: str | None) -> Request:
        """
        Build the request that obtains a new access token.

        Args:
            base_url: Base URL of the API the token is for.
            refresh_token: The current refresh token, if any. Providers that
                support refreshing use it instead of their primary grant.
        """
        ...

    def parse_token_response(self, response: httpx.Response) -> TokenGrant:
        """
        Extract the token grant from a token endpoint response.

        Raises:
            InvalidCredentialsError: If the server rejected the client credentials.
            AuthError: If the server did not issue a token.
        """
        ...


def parse_token_response(response: httpx.Response) -> TokenGrant:
    """Parse an OAuth2 token response into a TokenGrant.

    Args:
        response: The token endpoint response.

    Returns:
        TokenGrant: access token, optional refresh token and lifetime in seconds.

    Raises:
        InvalidCredentialsError: If the body carries ``"error": "invalid_client"``.
        AuthError: If the status is not 200 or the body has no access token.
    """
    try:
        token_data = response.json()
    except ValueError:
        token_data = None
    if not isinstance(token_data, dict):
        token_data = {}

    if token_data.get("error") == "invalid_client":
        logger.error("Token endpoint rejected the client credentials.")
        raise InvalidCredentialsError("Invalid Credentials", response=response)

    if response.status_code != httpx.codes.OK:
        message = token_data.get("error_description", "Unknown API error")
        logger.error(f"Token request failed with status {response.status_code}: {message}")
        raise AuthError(message, response=response)

    access_token = token_data.get("access_token")
    if access_token is None:
        raise AuthError("Access token not found in token response.", response=response)

    refresh_token = token_data.get("refresh_token")
    return TokenGrant(
        access_token=str(access_token),
        refresh_token=str(refresh_token) if refresh_token is not None else None,
        expires_in=int(token_data.get("expires_in", 0)),
    )


def _form_request(url: str, data: dict[str, str], headers: dict[str, str] | None = None) -> Request:
    return Request(
        method="POST",
        url=url,
        headers={**(headers or {}), "Content-Type": FORM_CONTENT_TYPE},
        body=urlencode(data),
    )


class ClientCredentialsAuth:
    """Obtains tokens with the OAuth2 client credentials grant.

    Tokens are requested from ``{base_url}/{token_resource}``. When the client
    holds a refresh token, the refresh token grant is used against
    ``{base_url}/{refresh_resource}`` instead.

    Attributes:
        _client_id: The OAuth2 client ID.
        _client_secret: The OAuth2 client secret.
        _refresh_resource: Path of the refresh endpoint relative to the base URL.
        _token_resource: Path of the token endpoint relative to the base URL.
    """

    grant_type = "client_credentials"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        refresh_resource: str = "token",
        token_resource: str = "token",
    ):
        if not client_id or not client_secret:
            raise ConfigurationError(
                f"{type(self).__name__} requires 'client_id' and 'client_secret'."
            )
        self._client_id: str = client_id
        self._client_secret: str = client_secret
        self._refresh_resource = refresh_resource
        self._token_resource = token_resource
        logger.debug(f"{type(self).__name__} initialized.")

    def _grant_data(self) -> dict[str, str]:
        return {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": self.grant_type,
        }

    def build_token_request(self, base_url: str, refresh_token: str | None) -> Request:
        if refresh_token is not None:
            logger.trace("Building refresh token request.")
            return _form_request(
                f"{base_url}/{self._refresh_resource}",
                {
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )

        logger.trace(f"Building {self.grant_type} token request.")
        return _form_request(f"{base_url}/{self._token_resource}", self._grant_data())

    def parse_token_response(self, response: httpx.Response) -> TokenGrant:
        return parse_token_response(response)


class OwnerCredentialsAuth(ClientCredentialsAuth):
    """Obtains tokens with the OAuth2 resource owner password credentials grant."""

    grant_type = "password"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        username: str | None,
        password: str | None,
        refresh_resource: str = "token",
        token_resource: str = "token",
    ):
        if not username or not password:
            raise ConfigurationError(
                "OwnerCredentialsAuth requires 'username' and 'password'."
            )
        super().__init__(client_id, client_secret, refresh_resource, token_resource)
        self._username: str = username
        self._password: str = password

    def _grant_data(self) -> dict[str, str]:
        return {
            **super()._grant_data(),
            "username": self._username,
            "password": self._password,
        }


class ApiGatewayClientCredentialsAuth:
    """Obtains tokens from an API gateway's own token endpoint.

    The gateway expects the client credentials as HTTP Basic credentials and
    does not support refresh tokens; every exchange is a fresh client
    credentials grant against ``auth_url``.
    """

    def __init__(self, client_id: str | None, client_secret: str | None, auth_url: str | None):
        if not client_id or not client_secret or not auth_url:
            raise ConfigurationError(
                "ApiGatewayClientCredentialsAuth requires 'client_id', 'client_secret', and 'auth_url'."
            )
        self._auth_url: str = auth_url
        basic_auth = httpx.BasicAuth(username=client_id, password=client_secret)
        signed = next(basic_auth.auth_flow(httpx.Request("POST", auth_url)))
        self._authorization: str = signed.headers["Authorization"]
        logger.debug("ApiGatewayClientCredentialsAuth initialized.")

    def build_token_request(self, base_url: str, refresh_token: str | None) -> Request:
        return _form_request(
            self._auth_url,
            {"grant_type": "client_credentials"},
            headers={"Authorization": self._authorization},
        )

    def parse_token_response(self, response: httpx.Response) -> TokenGrant:
        return parse_token_response(response)


def create_authentication(settings: "ClientSettings") -> AuthenticationProvider:
    """Build the authentication provider described by ``settings``.

    Raises:
        ConfigurationError: If the settings lack credentials the chosen
            strategy needs.
    """
    auth_type = settings.auth_type
    logger.debug(f"Creating authentication provider for {auth_type.value}")
    if auth_type is AuthStrategyType.API_GATEWAY:
        return ApiGatewayClientCredentialsAuth(
            settings.client_id, settings.client_secret, settings.auth_url
        )
    if auth_type is AuthStrategyType.OWNER_CREDENTIALS:
        return OwnerCredentialsAuth(
            settings.client_id,
            settings.client_secret,
            settings.username,
            settings.password,
            refresh_resource=settings.refresh_resource,
            token_resource=settings.token_resource,
        )
    return ClientCredentialsAuth(
        settings.client_id,
        settings.client_secret,
        refresh_resource=settings.refresh_resource,
        token_resource=settings.token_resource,
    )
