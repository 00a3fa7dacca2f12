"""PEM envelope decoding."""

import base64
import binascii
import re
from pathlib import Path

from kvsign.core.errors import PemFormatError
from kvsign.crypto.types import PemObject

_PEM_BLOCK = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----"
    r"(?P<body>.*?)"
    r"-----END (?P<end>[A-Z0-9 ]+)-----",
    re.DOTALL,
)


def _strip_headers(body: str) -> str:
    """Drop RFC 1421 encapsulated headers (e.g. Proc-Type) if present."""
    lines = [line.strip() for line in body.strip().splitlines()]
    if lines and ":" in lines[0]:
        try:
            blank = lines.index("")
        except ValueError:
            raise PemFormatError(
                "PEM headers are not terminated by a blank line"
            ) from None
        lines = lines[blank + 1 :]
    return "".join(lines)


def decode_pem(text: str) -> PemObject:
    """Decode the single PEM block contained in ``text``."""
    blocks = list(_PEM_BLOCK.finditer(text))
    if not blocks:
        raise PemFormatError("no PEM block found")
    if len(blocks) > 1:
        raise PemFormatError(f"expected one PEM block, found {len(blocks)}")

    block = blocks[0]
    label = block.group("label")
    if block.group("end") != label:
        raise PemFormatError(
            f"PEM END label {block.group('end')!r} does not match BEGIN {label!r}"
        )

    encoded = _strip_headers(block.group("body"))
    if not encoded:
        raise PemFormatError(f"PEM block {label!r} has an empty body")
    try:
        payload = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise PemFormatError(f"PEM block {label!r} has an invalid body: {exc}") from exc
    return PemObject(label=label, payload=payload)


def read_pem_file(path: str | Path) -> PemObject:
    """Read and decode a PEM file. OSError propagates if it cannot be read."""
    raw = Path(path).read_bytes()
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError as exc:
        raise PemFormatError(f"{path} is not an ASCII PEM file") from exc
    try:
        return decode_pem(text)
    except PemFormatError as exc:
        raise PemFormatError(f"{path}: {exc}") from exc
