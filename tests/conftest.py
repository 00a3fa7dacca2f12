"""Shared test fixtures for kvsign."""

import base64
import json
import uuid
from collections.abc import Iterator
from pathlib import Path

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from jwt.algorithms import RSAAlgorithm

VAULT_NAME = "testvault"
VAULT_URI = f"https://{VAULT_NAME}.vault.azure.net/"
OBJECT_ID = "00000000-1111-2222-3333-444444444444"
HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin settings that tests rely on regardless of the host environment."""
    monkeypatch.setenv("KVSIGN_KEY_NAME", "testKey")
    monkeypatch.setenv("KVSIGN_VERIFY_SIGNATURE", "true")
    monkeypatch.delenv("KVSIGN_DIGEST_ALGORITHM", raising=False)
    monkeypatch.delenv("KVSIGN_SIGN_ALGORITHM", raising=False)


@pytest.fixture(scope="session")
def rsa_private_key() -> RSAPrivateKey:
    """A 2048-bit RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key() -> RSAPrivateKey:
    """A second, unrelated RSA key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_pem(key: RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_pem(key: RSAPrivateKey) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture
def key_files(tmp_path: Path, rsa_private_key: RSAPrivateKey) -> tuple[Path, Path]:
    """PKCS#8 private and SPKI public PEM files for the session key."""
    priv = tmp_path / "private.pem"
    pub = tmp_path / "public.pem"
    priv.write_bytes(private_pem(rsa_private_key))
    pub.write_bytes(public_pem(rsa_private_key))
    return priv, pub


@pytest.fixture
def other_public_file(tmp_path: Path, other_private_key: RSAPrivateKey) -> Path:
    """SPKI public PEM file for an unrelated key."""
    path = tmp_path / "other_public.pem"
    path.write_bytes(public_pem(other_private_key))
    return path


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _error(status: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


def _canned(failure: tuple[int, dict | None]) -> httpx.Response:
    status, body = failure
    if body is None:
        return httpx.Response(status)
    return httpx.Response(status, json=body)


# Vault signing algorithm -> (prehashed digest, PSS padding)
VAULT_SIGN_ALGORITHMS = {
    "RS256": (hashes.SHA256, False),
    "RS384": (hashes.SHA384, False),
    "RS512": (hashes.SHA512, False),
    "PS256": (hashes.SHA256, True),
    "PS384": (hashes.SHA384, True),
    "PS512": (hashes.SHA512, True),
}


class FakeKeyVault:
    """In-process identity provider, resource manager and key vault.

    Imported JWKs are kept per key name and sign requests are answered with
    a real signature for the requested ``alg`` unless ``canned_signature``
    is set.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.keys: dict[str, dict] = {}
        self.canned_signature: str | None = None
        self.import_failure: tuple[int, dict | None] | None = None
        self.sign_failure: tuple[int, dict | None] | None = None
        self.token_failure: tuple[int, dict] | None = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, host_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if host_fragment in r.url.host]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "login.microsoftonline.com":
            return self._token(request)
        if host == "management.azure.com":
            return self._provision(request)
        if host.endswith(".vault.azure.net"):
            parts = request.url.path.strip("/").split("/")
            if request.method == "PUT" and len(parts) == 2:
                return self._import(request, parts[1])
            if request.method == "POST" and parts[-1] == "sign":
                return self._sign(request, parts[1])
        return _error(HTTP_NOT_FOUND, "NotFound", "no route")

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.token_failure is not None:
            return _canned(self.token_failure)
        token = jwt.encode({"oid": OBJECT_ID}, "test-signing-secret", algorithm="HS256")
        return httpx.Response(
            HTTP_OK, json={"access_token": token, "token_type": "Bearer"}
        )

    def _provision(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.rstrip("/").split("/")[-1]
        body = json.loads(request.content)
        properties = {
            **body["properties"],
            "vaultUri": f"https://{name}.vault.azure.net/",
        }
        return httpx.Response(
            HTTP_OK,
            json={"name": name, "location": body["location"], "properties": properties},
        )

    def _import(self, request: httpx.Request, name: str) -> httpx.Response:
        if self.import_failure is not None:
            return _canned(self.import_failure)
        body = json.loads(request.content)
        version = uuid.uuid4().hex
        self.keys[name] = body["key"]
        kid = f"https://{request.url.host}/keys/{name}/{version}"
        public = {k: body["key"][k] for k in ("kty", "n", "e", "key_ops")}
        return httpx.Response(
            HTTP_OK,
            json={"key": {**public, "kid": kid}, "attributes": body["attributes"]},
        )

    def _sign(self, request: httpx.Request, name: str) -> httpx.Response:
        if self.sign_failure is not None:
            return _canned(self.sign_failure)
        if name not in self.keys:
            return _error(HTTP_NOT_FOUND, "KeyNotFound", f"{name} not found")
        body = json.loads(request.content)
        if body["alg"] not in VAULT_SIGN_ALGORITHMS:
            message = f"unknown alg {body['alg']}"
            return _error(HTTP_BAD_REQUEST, "BadParameter", message)
        kid = f"https://{request.url.host}/keys/{name}"
        if self.canned_signature is not None:
            return httpx.Response(
                HTTP_OK, json={"kid": kid, "value": self.canned_signature}
            )

        hash_cls, use_pss = VAULT_SIGN_ALGORITHMS[body["alg"]]
        hash_algorithm = hash_cls()
        digest = _b64url_decode(body["value"])
        if len(digest) != hash_algorithm.digest_size:
            return _error(HTTP_BAD_REQUEST, "BadParameter", "Invalid digest length")
        if use_pss:
            pad = padding.PSS(
                mgf=padding.MGF1(hash_algorithm),
                salt_length=hash_algorithm.digest_size,
            )
        else:
            pad = padding.PKCS1v15()
        key = RSAAlgorithm.from_jwk(json.dumps(self.keys[name]))
        signature = key.sign(digest, pad, Prehashed(hash_algorithm))
        return httpx.Response(HTTP_OK, json={"kid": kid, "value": _b64url(signature)})


@pytest.fixture
def fake_vault() -> FakeKeyVault:
    return FakeKeyVault()


@pytest.fixture
def http(fake_vault: FakeKeyVault) -> Iterator[httpx.Client]:
    """httpx client routed to the fake vault."""
    with httpx.Client(transport=fake_vault.transport) as client:
        yield client
