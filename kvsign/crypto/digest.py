"""Local digest computation and signature verification."""

import base64
import hashlib

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from kvsign.core.errors import DigestError, SignatureVerificationError
from kvsign.crypto.keys import to_public_key
from kvsign.crypto.types import Digest, RSAPublicKeyPart, SignatureResult

_DIGESTS = {
    "SHA256": ("SHA-256", hashlib.sha256, hashes.SHA256),
    "SHA384": ("SHA-384", hashlib.sha384, hashes.SHA384),
    "SHA512": ("SHA-512", hashlib.sha512, hashes.SHA512),
}

# Signing algorithm -> (digest name, uses PSS padding)
SIGN_ALGORITHMS = {
    "RS256": ("SHA-256", False),
    "RS384": ("SHA-384", False),
    "RS512": ("SHA-512", False),
    "PS256": ("SHA-256", True),
    "PS384": ("SHA-384", True),
    "PS512": ("SHA-512", True),
}


def _lookup(algorithm: str) -> tuple:
    key = algorithm.upper().replace("-", "").replace("_", "")
    try:
        return _DIGESTS[key]
    except KeyError:
        raise DigestError(f"unsupported digest algorithm: {algorithm}") from None


def normalize_digest_algorithm(algorithm: str) -> str:
    """Return the canonical name, e.g. ``sha256`` -> ``SHA-256``."""
    return _lookup(algorithm)[0]


def compute_digest(plaintext: str, algorithm: str = "SHA-256") -> Digest:
    """Hash the UTF-8 encoding of ``plaintext``."""
    name, factory, _ = _lookup(algorithm)
    return Digest(algorithm=name, value=factory(plaintext.encode("utf-8")).digest())


def check_sign_algorithm(sign_algorithm: str, digest: Digest) -> None:
    """Ensure the vault signing algorithm consumes this digest."""
    try:
        expected, _ = SIGN_ALGORITHMS[sign_algorithm.upper()]
    except KeyError:
        raise DigestError(f"unsupported signing algorithm: {sign_algorithm}") from None
    if expected != digest.algorithm:
        raise DigestError(
            f"{sign_algorithm} requires a {expected} digest, got {digest.algorithm}"
        )


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def verify_signature(
    public_key: RSAPublicKeyPart, digest: Digest, result: SignatureResult
) -> None:
    """Verify a vault signature over ``digest`` with the retained public key."""
    check_sign_algorithm(result.sign_algorithm, digest)
    _, use_pss = SIGN_ALGORITHMS[result.sign_algorithm.upper()]
    hash_algorithm = _lookup(digest.algorithm)[2]()
    if use_pss:
        pad = padding.PSS(
            mgf=padding.MGF1(hash_algorithm), salt_length=hash_algorithm.digest_size
        )
    else:
        pad = padding.PKCS1v15()
    try:
        signature = _b64url_decode(result.value)
        to_public_key(public_key).verify(
            signature, digest.value, pad, Prehashed(hash_algorithm)
        )
    except (InvalidSignature, ValueError) as exc:
        raise SignatureVerificationError(
            f"{result.sign_algorithm} signature does not verify against the public key"
        ) from exc
