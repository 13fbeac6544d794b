"""Hybrid envelope encryption for contract sections.

An envelope is ``hyper-protect-basic.<b64 password>.<b64 payload>``.  The
password is 32 random bytes encrypted with the recipient certificate's RSA
key; the payload is the section encrypted with AES-256-CBC under a PBKDF2
key derived from the raw password.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from aumai_hpcontract.errors import (
    EmptyParameterError,
    EncryptionFailedError,
    MalformedEnvelopeError,
    PasswordDecryptionFailedError,
    PayloadDecryptionFailedError,
    ProviderError,
)
from aumai_hpcontract.provider import CryptographyProvider, CryptoProvider

logger = logging.getLogger(__name__)

ENVELOPE_PREFIX = "hyper-protect-basic"
PASSWORD_LENGTH = 32


@contextmanager
def scratch_buffer(data: bytes) -> Iterator[bytearray]:
    """Hold key material in a mutable buffer that is zeroed on exit."""
    buffer = bytearray(data)
    try:
        yield buffer
    finally:
        for index in range(len(buffer)):
            buffer[index] = 0


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.strip(), validate=True)


def split_envelope(envelope: str) -> tuple[str, str, str]:
    """Return ``(prefix, encrypted_password, encrypted_payload)``.

    Raises:
        MalformedEnvelopeError: if *envelope* does not have exactly three
            dot-separated fields.
    """
    fields = envelope.strip().split(".")
    if len(fields) != 3:
        raise MalformedEnvelopeError(
            f"encrypted data must have 3 dot-separated fields, got {len(fields)}"
        )
    prefix, password, payload = fields
    if prefix != ENVELOPE_PREFIX:
        raise MalformedEnvelopeError(f"unexpected envelope prefix: {prefix!r}")
    return prefix, password, payload


class EnvelopeCodec:
    """Encrypt plaintext into envelopes and back."""

    def __init__(self, provider: CryptoProvider | None = None) -> None:
        self._provider = provider or CryptographyProvider()

    @property
    def provider(self) -> CryptoProvider:
        return self._provider

    def encrypt(self, plaintext: str, certificate_pem: str) -> str:
        """Encrypt *plaintext* for the holder of *certificate_pem*.

        Every call draws a fresh password, so encrypting the same text twice
        yields two unrelated envelopes.

        Raises:
            EmptyParameterError: if *plaintext* or *certificate_pem* is empty.
            EncryptionFailedError: if the provider rejects the certificate or
                fails to encrypt.
        """
        if not plaintext:
            raise EmptyParameterError("plaintext")
        if not certificate_pem or not certificate_pem.strip():
            raise EmptyParameterError("encryption certificate")

        try:
            with scratch_buffer(self._provider.random_bytes(PASSWORD_LENGTH)) as password:
                encrypted_password = self._provider.asymmetric_encrypt(
                    bytes(password), certificate_pem
                )
                encrypted_payload = self._provider.symmetric_encrypt(
                    bytes(password), plaintext.encode("utf-8")
                )
        except ProviderError as exc:
            raise EncryptionFailedError(f"failed to encrypt data - {exc}") from exc

        logger.debug("encrypted %d bytes into envelope", len(plaintext))
        return ".".join(
            (
                ENVELOPE_PREFIX,
                base64.b64encode(encrypted_password).decode("ascii"),
                base64.b64encode(encrypted_payload).decode("ascii"),
            )
        )

    def decrypt(self, envelope: str, private_key_pem: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`."""
        if not envelope:
            raise EmptyParameterError("encrypted data")
        if not private_key_pem:
            raise EmptyParameterError("private key")

        _, encrypted_password, encrypted_payload = split_envelope(envelope)
        with scratch_buffer(self.decrypt_password(encrypted_password, private_key_pem)) as password:
            return self.decrypt_payload(bytes(password), encrypted_payload)

    def decrypt_password(self, encrypted_password: str, private_key_pem: str) -> bytes:
        """Recover the raw 32-byte password from its base64 RSA ciphertext.

        Raises:
            PasswordDecryptionFailedError: on bad base64, a wrong key, or a
                recovered value that is not a 32-byte password.
        """
        if not encrypted_password or not private_key_pem:
            raise EmptyParameterError("encrypted password", "private key")
        try:
            ciphertext = _b64decode(encrypted_password)
        except (binascii.Error, ValueError) as exc:
            raise PasswordDecryptionFailedError(
                f"failed to decode encrypted password - {exc}"
            ) from exc
        try:
            password = self._provider.asymmetric_decrypt(ciphertext, private_key_pem)
        except ProviderError as exc:
            raise PasswordDecryptionFailedError(
                f"failed to decrypt password - {exc}"
            ) from exc
        if len(password) != PASSWORD_LENGTH:
            raise PasswordDecryptionFailedError(
                f"decrypted password has {len(password)} bytes, "
                f"expected {PASSWORD_LENGTH}"
            )
        return password

    def decrypt_payload(self, password: bytes, encrypted_payload: str) -> str:
        """Decrypt a base64 payload field with an already recovered password.

        Raises:
            PayloadDecryptionFailedError: on bad base64, a wrong password,
                tampered ciphertext, or plaintext that is not UTF-8.
        """
        if not password or not encrypted_payload:
            raise EmptyParameterError("password", "encrypted payload")
        try:
            ciphertext = _b64decode(encrypted_payload)
        except (binascii.Error, ValueError) as exc:
            raise PayloadDecryptionFailedError(
                f"failed to decode encrypted payload - {exc}"
            ) from exc
        try:
            plaintext = self._provider.symmetric_decrypt(password, ciphertext)
        except ProviderError as exc:
            raise PayloadDecryptionFailedError(
                f"failed to decrypt payload - {exc}"
            ) from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadDecryptionFailedError(
                "decrypted payload is not valid UTF-8 text"
            ) from exc


__all__ = [
    "ENVELOPE_PREFIX",
    "PASSWORD_LENGTH",
    "EnvelopeCodec",
    "scratch_buffer",
    "split_envelope",
]
