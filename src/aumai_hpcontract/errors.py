"""Error taxonomy for aumai-hpcontract."""

from __future__ import annotations


class ContractError(Exception):
    """Base class for every failure surfaced by the package.

    ``stage`` names the pipeline stage that failed so an operator can tell
    validation, encryption, signing and resolution failures apart without
    reading the underlying provider error.
    """

    stage: str = "contract"

    def __init__(self, message: str, stage: str | None = None) -> None:
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class EmptyParameterError(ContractError):
    stage = "input"

    def __init__(self, *names: str) -> None:
        detail = f": {', '.join(names)}" if names else ""
        super().__init__(f"required parameter is empty{detail}")


class InvalidInputError(ContractError):
    stage = "input"


class InvalidPlatformError(ContractError):
    stage = "platform"


class SchemaValidationError(ContractError):
    stage = "validation"


class MalformedEnvelopeError(ContractError):
    stage = "decryption"


class EncryptionFailedError(ContractError):
    stage = "encryption"


class PasswordDecryptionFailedError(ContractError):
    stage = "decryption"


class PayloadDecryptionFailedError(ContractError):
    stage = "decryption"


class SigningError(ContractError):
    stage = "signing"


class SignatureVerificationError(ContractError):
    stage = "verification"


class CertificateParseError(ContractError):
    stage = "certificate"


class CertificateExpiredError(ContractError):
    stage = "certificate"


class CertificateDownloadError(ContractError):
    stage = "download"


class InvalidVersionError(ContractError):
    stage = "resolution"


class NoMatchingVersionError(ContractError):
    stage = "resolution"


class ProviderError(ContractError):
    """Raised by a :class:`~aumai_hpcontract.provider.CryptoProvider`.

    Components never let this escape unwrapped; it is re-raised as the
    error kind of the step that called the provider.
    """

    stage = "provider"


__all__ = [
    "CertificateDownloadError",
    "CertificateExpiredError",
    "CertificateParseError",
    "ContractError",
    "EmptyParameterError",
    "EncryptionFailedError",
    "InvalidInputError",
    "InvalidPlatformError",
    "InvalidVersionError",
    "MalformedEnvelopeError",
    "NoMatchingVersionError",
    "PasswordDecryptionFailedError",
    "PayloadDecryptionFailedError",
    "ProviderError",
    "SchemaValidationError",
    "SignatureVerificationError",
    "SigningError",
]
