"""RSA key parsing from PKCS#8 and SubjectPublicKeyInfo DER."""

import logging
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from kvsign.core.errors import KeyFormatError, UnsupportedAlgorithmError
from kvsign.crypto.pem import read_pem_file
from kvsign.crypto.types import RSAKeyPair, RSAPublicKeyPart

logger = logging.getLogger(__name__)

PRIVATE_KEY_LABEL = "PRIVATE KEY"
PUBLIC_KEY_LABEL = "PUBLIC KEY"


def _is_private_key_info(der: bytes) -> bool:
    """Check the PKCS#8 shape: version INTEGER followed by an algorithm SEQUENCE.

    A PKCS#1 RSAPrivateKey has the modulus INTEGER in that position instead.
    """
    if len(der) < 2 or der[0] != 0x30:
        return False
    offset = 2 + (der[1] & 0x7F if der[1] & 0x80 else 0)
    if der[offset : offset + 1] != b"\x02" or offset + 1 >= len(der):
        return False
    offset += 2 + der[offset + 1]
    return der[offset : offset + 1] == b"\x30"


def parse_private_key(der: bytes) -> RSAKeyPair:
    """Parse a PKCS#8 RSA private key, keeping its encoded CRT parameters."""
    if not _is_private_key_info(der):
        raise KeyFormatError("private key is not a PKCS#8 PrivateKeyInfo structure")
    try:
        loaded = serialization.load_der_private_key(der, password=None)
    except UnsupportedAlgorithm as exc:
        raise UnsupportedAlgorithmError(
            f"unsupported private key algorithm: {exc}"
        ) from exc
    except TypeError as exc:
        raise KeyFormatError("encrypted private keys are not supported") from exc
    except ValueError as exc:
        raise KeyFormatError(f"malformed private key: {exc}") from exc

    if not isinstance(loaded, RSAPrivateKey):
        raise UnsupportedAlgorithmError(
            f"expected an RSA private key, got {type(loaded).__name__}"
        )
    numbers = loaded.private_numbers()
    return RSAKeyPair(
        n=numbers.public_numbers.n,
        e=numbers.public_numbers.e,
        d=numbers.d,
        p=numbers.p,
        q=numbers.q,
        dp=numbers.dmp1,
        dq=numbers.dmq1,
        qi=numbers.iqmp,
    )


def parse_public_key(der: bytes) -> RSAPublicKeyPart:
    """Parse an X.509 SubjectPublicKeyInfo RSA public key."""
    try:
        loaded = serialization.load_der_public_key(der)
    except UnsupportedAlgorithm as exc:
        raise UnsupportedAlgorithmError(
            f"unsupported public key algorithm: {exc}"
        ) from exc
    except ValueError as exc:
        raise KeyFormatError(f"malformed public key: {exc}") from exc

    if not isinstance(loaded, RSAPublicKey):
        raise UnsupportedAlgorithmError(
            f"expected an RSA public key, got {type(loaded).__name__}"
        )
    numbers = loaded.public_numbers()
    return RSAPublicKeyPart(n=numbers.n, e=numbers.e)


def _check_label(label: str, expected: str, path: str | Path) -> None:
    if label != expected:
        raise KeyFormatError(f"{path}: expected a {expected} PEM block, found {label}")


def load_private_key_file(path: str | Path) -> RSAKeyPair:
    """Read a PEM private key file."""
    pem = read_pem_file(path)
    _check_label(pem.label, PRIVATE_KEY_LABEL, path)
    key = parse_private_key(pem.payload)
    logger.info("Loaded %d-bit RSA private key from %s", key.n.bit_length(), path)
    return key


def load_public_key_file(path: str | Path) -> RSAPublicKeyPart:
    """Read a PEM public key file."""
    pem = read_pem_file(path)
    _check_label(pem.label, PUBLIC_KEY_LABEL, path)
    key = parse_public_key(pem.payload)
    logger.info("Loaded %d-bit RSA public key from %s", key.n.bit_length(), path)
    return key


def to_public_key(part: RSAPublicKeyPart) -> RSAPublicKey:
    """Rebuild a cryptography public key object for local verification."""
    return rsa.RSAPublicNumbers(e=part.e, n=part.n).public_key()
