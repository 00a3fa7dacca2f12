"""Key vault data-plane client: key import and remote signing."""

import logging

import httpx

from kvsign.core.errors import KeyImportError, RemoteSignError
from kvsign.crypto.types import Digest, JsonWebKey, SignatureResult
from kvsign.vault.types import KeyAttributes, KeyHandle

logger = logging.getLogger(__name__)


def error_details(response: httpx.Response) -> tuple[str | None, str]:
    """Extract (code, message) from a vault or identity provider error body."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text or response.reason_phrase
    if not isinstance(body, dict):
        return None, response.text
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("code"), error.get("message") or response.reason_phrase
    if isinstance(error, str):
        return error, body.get("error_description") or response.reason_phrase
    return None, response.text


def json_body(response: httpx.Response) -> dict | None:
    """Return a JSON object body, or None when the body is empty or not an object."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _version_from_kid(kid: str) -> str:
    # https://{vault}/keys/{name}/{version}
    parts = kid.rstrip("/").split("/")
    if len(parts) >= 2 and parts[-2] != "keys":
        return parts[-1]
    return ""


class KeyVaultClient:
    """Issues key import and sign requests against a vault REST API."""

    def __init__(
        self,
        http: httpx.Client,
        api_version: str,
        auth: httpx.Auth | None = None,
    ) -> None:
        self._http = http
        self._api_version = api_version
        self._auth = auth

    def _request(self, method: str, url: str, payload: dict) -> httpx.Response:
        kwargs: dict = {"params": {"api-version": self._api_version}, "json": payload}
        if self._auth is not None:
            kwargs["auth"] = self._auth
        return self._http.request(method, url, **kwargs)

    def import_key(
        self,
        vault_uri: str,
        key_name: str,
        jwk: JsonWebKey,
        attributes: KeyAttributes | None = None,
        *,
        hsm: bool = False,
    ) -> KeyHandle:
        """Import (or overwrite with a new version) ``key_name`` from a JWK."""
        attributes = attributes or KeyAttributes()
        url = f"{vault_uri.rstrip('/')}/keys/{key_name}"
        payload = {
            "key": jwk.model_dump(mode="json"),
            "hsm": hsm,
            "attributes": attributes.to_wire(),
        }
        logger.info("Importing key %s into %s", key_name, vault_uri)
        try:
            response = self._request("PUT", url, payload)
        except httpx.HTTPError as exc:
            raise KeyImportError(f"import of {key_name} failed: {exc}") from exc
        if response.is_error:
            code, message = error_details(response)
            raise KeyImportError(message, status_code=response.status_code, code=code)

        bundle = json_body(response)
        key = bundle.get("key") if bundle else None
        if not isinstance(key, dict) or not key.get("kid"):
            raise KeyImportError(
                f"vault returned no key bundle for {key_name}",
                status_code=response.status_code,
            )
        kid = key["kid"]
        logger.info("Imported key %s", kid)
        return KeyHandle(
            vault_uri=vault_uri,
            key_name=key_name,
            version=_version_from_kid(kid),
            kid=kid,
        )

    def sign(
        self, handle: KeyHandle, algorithm: str, digest: Digest
    ) -> SignatureResult:
        """Ask the vault to sign a precomputed digest."""
        url = f"{handle.key_url}/sign"
        payload = {"alg": algorithm, "value": digest.b64url}
        logger.info(
            "Signing %s digest with %s using %s",
            digest.algorithm,
            algorithm,
            handle.key_name,
        )
        try:
            response = self._request("POST", url, payload)
        except httpx.HTTPError as exc:
            raise RemoteSignError(f"sign with {handle.key_name} failed: {exc}") from exc
        if response.is_error:
            code, message = error_details(response)
            raise RemoteSignError(message, status_code=response.status_code, code=code)

        result = json_body(response)
        value = result.get("value") if result else None
        if not isinstance(value, str) or not value:
            raise RemoteSignError(
                "vault returned no signature value", status_code=response.status_code
            )
        return SignatureResult(
            digest_algorithm=digest.algorithm,
            sign_algorithm=algorithm,
            value=value,
            kid=result.get("kid"),
        )
