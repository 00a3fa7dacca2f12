"""JSON Web Key construction for RSA key pairs (RFC 7517/7518)."""

import base64
from collections.abc import Iterable

from kvsign.core.errors import KeyMismatchError
from kvsign.crypto.types import JsonWebKey, KeyOperation, RSAKeyPair, RSAPublicKeyPart

DEFAULT_KEY_OPS = (KeyOperation.SIGN, KeyOperation.VERIFY)


def int_to_base64url(value: int) -> str:
    """Encode an unsigned integer as big-endian base64url without padding."""
    if value < 0:
        raise ValueError("JWK integers must be unsigned")
    byte_length = max(1, (value.bit_length() + 7) // 8)
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def base64url_to_int(text: str) -> int:
    """Decode an unpadded base64url big-endian integer."""
    padded = text + "=" * (-len(text) % 4)
    return int.from_bytes(base64.urlsafe_b64decode(padded), byteorder="big")


def build_jwk(
    private_key: RSAKeyPair,
    public_key: RSAPublicKeyPart,
    operations: Iterable[KeyOperation | str] = DEFAULT_KEY_OPS,
) -> JsonWebKey:
    """Combine both key halves into one private JWK limited to ``operations``."""
    if private_key.n != public_key.n:
        raise KeyMismatchError("public key modulus does not match the private key")
    if private_key.e != public_key.e:
        raise KeyMismatchError("public key exponent does not match the private key")

    key_ops = sorted({KeyOperation(op) for op in operations})
    if not key_ops:
        raise ValueError("at least one key operation is required")

    return JsonWebKey(
        n=int_to_base64url(public_key.n),
        e=int_to_base64url(public_key.e),
        d=int_to_base64url(private_key.d),
        p=int_to_base64url(private_key.p),
        q=int_to_base64url(private_key.q),
        dp=int_to_base64url(private_key.dp),
        dq=int_to_base64url(private_key.dq),
        qi=int_to_base64url(private_key.qi),
        key_ops=key_ops,
    )


def jwk_to_key_pair(jwk: JsonWebKey) -> RSAKeyPair:
    """Decode every integer field of a JWK back into an RSAKeyPair."""
    return RSAKeyPair(
        n=base64url_to_int(jwk.n),
        e=base64url_to_int(jwk.e),
        d=base64url_to_int(jwk.d),
        p=base64url_to_int(jwk.p),
        q=base64url_to_int(jwk.q),
        dp=base64url_to_int(jwk.dp),
        dq=base64url_to_int(jwk.dq),
        qi=base64url_to_int(jwk.qi),
    )
