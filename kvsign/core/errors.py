"""Exception taxonomy for key conversion, import and remote signing."""


class KvsignError(Exception):
    """Base class for every failure raised by kvsign."""


class PemFormatError(KvsignError):
    """No valid PEM block could be decoded."""


class KeyFormatError(KvsignError):
    """DER key material is malformed or not an RSA structure."""


class UnsupportedAlgorithmError(KvsignError):
    """Key material declares an algorithm other than RSA."""


class KeyMismatchError(KvsignError):
    """Public and private key halves describe different keys."""


class DigestError(KvsignError):
    """Digest algorithm is unsupported or incompatible with the signer."""


class PipelineStateError(KvsignError):
    """A pipeline step was invoked out of order."""


class SignatureVerificationError(KvsignError):
    """A signature returned by the vault does not verify locally."""


class RemoteError(KvsignError):
    """Non-success response from a remote service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __str__(self) -> str:
        parts = []
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.code:
            parts.append(self.code)
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class AuthenticationError(RemoteError):
    """The identity provider refused to issue a token."""


class VaultProvisionError(RemoteError):
    """Creating or updating the vault failed."""


class KeyImportError(RemoteError):
    """The vault rejected the key import."""


class RemoteSignError(RemoteError):
    """The vault sign operation failed."""
