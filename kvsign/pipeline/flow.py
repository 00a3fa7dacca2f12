"""Load, convert, import and remote-sign pipeline."""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path

from kvsign.core.errors import PipelineStateError
from kvsign.core.settings import VaultSettings
from kvsign.crypto.digest import check_sign_algorithm, compute_digest, verify_signature
from kvsign.crypto.jwk import DEFAULT_KEY_OPS, build_jwk
from kvsign.crypto.keys import load_private_key_file, load_public_key_file
from kvsign.crypto.types import (
    JsonWebKey,
    KeyOperation,
    RSAPublicKeyPart,
    SignatureResult,
)
from kvsign.vault.client import KeyVaultClient
from kvsign.vault.types import KeyAttributes, KeyHandle

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    """Lifecycle of one signing run."""

    UNINITIALIZED = "uninitialized"
    KEYS_LOADED = "keys_loaded"
    KEY_IMPORTED = "key_imported"
    SIGNED = "signed"
    FAILED = "failed"


def sign_string(
    client: KeyVaultClient,
    handle: KeyHandle,
    plaintext: str,
    digest_algorithm: str = "SHA-256",
    sign_algorithm: str = "RS256",
) -> SignatureResult:
    """Digest ``plaintext`` locally and have the vault sign the digest."""
    digest = compute_digest(plaintext, digest_algorithm)
    sign_algorithm = sign_algorithm.upper()
    check_sign_algorithm(sign_algorithm, digest)
    logger.debug("%s digest: %s", digest.algorithm, digest.hexdigest)
    return client.sign(handle, sign_algorithm, digest)


class SigningPipeline:
    """Drives one run through load -> import -> sign.

    Private key material only lives in the pipeline until it has been
    imported; afterwards only the public part is kept for verification.
    """

    def __init__(
        self, client: KeyVaultClient, settings: VaultSettings | None = None
    ) -> None:
        self._client = client
        self._settings = settings or VaultSettings()
        self._state = PipelineState.UNINITIALIZED
        self._jwk: JsonWebKey | None = None
        self._public_key: RSAPublicKeyPart | None = None
        self._handle: KeyHandle | None = None
        self._result: SignatureResult | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def public_key(self) -> RSAPublicKeyPart | None:
        return self._public_key

    @property
    def handle(self) -> KeyHandle | None:
        return self._handle

    @property
    def result(self) -> SignatureResult | None:
        return self._result

    @contextmanager
    def _step(self, operation: str, expected: PipelineState) -> Iterator[None]:
        if self._state is not expected:
            message = (
                f"{operation} requires state {expected.value}, "
                f"pipeline is {self._state.value}"
            )
            self._state = PipelineState.FAILED
            self._jwk = None
            raise PipelineStateError(message)
        try:
            yield
        except Exception as exc:
            self._state = PipelineState.FAILED
            self._jwk = None
            logger.error("%s failed: %s", operation, exc)
            raise

    def load_keys(
        self,
        private_key_path: str | Path,
        public_key_path: str | Path,
        operations: Iterable[KeyOperation | str] = DEFAULT_KEY_OPS,
    ) -> JsonWebKey:
        """Read both PEM files and build the JWK to import."""
        with self._step("load keys", PipelineState.UNINITIALIZED):
            private_key = load_private_key_file(private_key_path)
            public_key = load_public_key_file(public_key_path)
            self._jwk = build_jwk(private_key, public_key, operations)
            self._public_key = public_key
            self._state = PipelineState.KEYS_LOADED
        return self._jwk

    def import_key(
        self,
        vault_uri: str,
        key_name: str | None = None,
        attributes: KeyAttributes | None = None,
    ) -> KeyHandle:
        """Import the loaded JWK and discard the local private material."""
        with self._step("import key", PipelineState.KEYS_LOADED):
            assert self._jwk is not None
            self._handle = self._client.import_key(
                vault_uri,
                key_name or self._settings.key_name,
                self._jwk,
                attributes,
                hsm=self._settings.hsm,
            )
            self._jwk = None
            self._state = PipelineState.KEY_IMPORTED
        return self._handle

    def sign(self, plaintext: str) -> SignatureResult:
        """Sign ``plaintext`` remotely; optionally verify with the public key."""
        with self._step("sign", PipelineState.KEY_IMPORTED):
            assert self._handle is not None
            result = sign_string(
                self._client,
                self._handle,
                plaintext,
                self._settings.digest_algorithm,
                self._settings.sign_algorithm,
            )
            if self._settings.verify_signature:
                assert self._public_key is not None
                digest = compute_digest(plaintext, self._settings.digest_algorithm)
                verify_signature(self._public_key, digest, result)
                logger.info("Signature verified against the local public key")
            self._result = result
            self._state = PipelineState.SIGNED
        return result
