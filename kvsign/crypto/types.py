"""Type definitions for RSA key material, JWKs, digests and signatures."""

import base64
import json
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class PemObject(BaseModel):
    """A decoded PEM block: its label and DER payload."""

    model_config = ConfigDict(frozen=True)

    label: str
    payload: bytes


class RSAPublicKeyPart(BaseModel):
    """Public half of an RSA key."""

    model_config = ConfigDict(frozen=True)

    n: int
    e: int


class RSAKeyPair(BaseModel):
    """Full RSA private key including CRT parameters."""

    model_config = ConfigDict(frozen=True)

    n: int
    e: int
    d: int
    p: int
    q: int
    dp: int
    dq: int
    qi: int

    def public_part(self) -> RSAPublicKeyPart:
        """Return the {n, e} subset."""
        return RSAPublicKeyPart(n=self.n, e=self.e)


class KeyOperation(StrEnum):
    """JWK operations a vault key may be restricted to."""

    SIGN = "sign"
    VERIFY = "verify"


class JsonWebKey(BaseModel):
    """RSA private JWK carrying exactly what a vault import requires."""

    model_config = ConfigDict(frozen=True)

    kty: str = "RSA"
    n: str
    e: str
    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str
    key_ops: list[KeyOperation]

    def to_json(self) -> str:
        """Serialize deterministically (sorted keys, no whitespace)."""
        return json.dumps(
            self.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        )

    @classmethod
    def from_json(cls, raw: str) -> "JsonWebKey":
        """Parse a serialized JWK."""
        return cls.model_validate_json(raw)


class Digest(BaseModel):
    """Locally computed message digest."""

    model_config = ConfigDict(frozen=True)

    algorithm: str
    value: bytes

    @property
    def hexdigest(self) -> str:
        return self.value.hex()

    @property
    def b64url(self) -> str:
        """Unpadded base64url, the encoding vault sign requests expect."""
        return base64.urlsafe_b64encode(self.value).rstrip(b"=").decode()


class SignatureResult(BaseModel):
    """Outcome of a remote sign operation."""

    model_config = ConfigDict(frozen=True)

    digest_algorithm: str
    sign_algorithm: str
    value: str
    kid: str | None = None
