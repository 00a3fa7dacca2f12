"""OAuth2 client-credentials authentication for vault and management calls."""

import logging
from collections.abc import Generator

import httpx
import jwt

from kvsign.core.errors import AuthenticationError
from kvsign.vault.client import error_details, json_body
from kvsign.vault.types import ServicePrincipalCredentials

logger = logging.getLogger(__name__)


def fetch_token(
    client: httpx.Client,
    credentials: ServicePrincipalCredentials,
    scope: str,
    authority_host: str,
) -> str:
    """Request an access token for ``scope`` from the identity provider."""
    url = f"{authority_host.rstrip('/')}/{credentials.tenant_id}/oauth2/v2.0/token"
    data = {
        "grant_type": "client_credentials",
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret.get_secret_value(),
        "scope": scope,
    }
    try:
        response = client.post(url, data=data)
    except httpx.HTTPError as exc:
        raise AuthenticationError(f"token request failed: {exc}") from exc
    if response.is_error:
        code, message = error_details(response)
        raise AuthenticationError(message, status_code=response.status_code, code=code)

    token = (json_body(response) or {}).get("access_token")
    if not token:
        raise AuthenticationError(
            "token response carried no access_token", status_code=response.status_code
        )
    logger.debug("Obtained access token for scope %s", scope)
    return token


def token_object_id(token: str) -> str:
    """Read the principal object id (``oid``) from an access token."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"access token is not a JWT: {exc}") from exc
    oid = claims.get("oid")
    if not oid:
        raise AuthenticationError("access token has no oid claim")
    return oid


class ClientCredentialsAuth(httpx.Auth):
    """Bearer auth that fetches one token per scope on first use."""

    def __init__(
        self,
        client: httpx.Client,
        credentials: ServicePrincipalCredentials,
        scope: str,
        authority_host: str,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._scope = scope
        self._authority_host = authority_host
        self._token: str | None = None

    @property
    def token(self) -> str:
        if self._token is None:
            self._token = fetch_token(
                self._client, self._credentials, self._scope, self._authority_host
            )
        return self._token

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request
