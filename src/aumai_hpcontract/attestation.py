"""Decryption of encrypted attestation records."""

from __future__ import annotations

import logging

from aumai_hpcontract.envelope import ENVELOPE_PREFIX, EnvelopeCodec, scratch_buffer, split_envelope
from aumai_hpcontract.errors import (
    EmptyParameterError,
    MalformedEnvelopeError,
    PayloadDecryptionFailedError,
)
from aumai_hpcontract.provider import CryptoProvider

logger = logging.getLogger(__name__)


def get_attestation_records(
    data: str, private_key: str, provider: CryptoProvider | None = None
) -> str:
    """Decrypt the ``se-checksums.txt.enc`` style attestation blob *data*.

    Raises:
        EmptyParameterError: if *data* or *private_key* is empty.
        MalformedEnvelopeError: if *data* is not a three-field envelope.
        PasswordDecryptionFailedError: if the password cannot be recovered.
        PayloadDecryptionFailedError: if the records cannot be decrypted.
    """
    if not data or not data.strip() or not private_key or not private_key.strip():
        raise EmptyParameterError("data", "private key")
    codec = EnvelopeCodec(provider)
    _, encrypted_password, encrypted_records = split_envelope(data)
    with scratch_buffer(codec.decrypt_password(encrypted_password, private_key)) as password:
        try:
            records = codec.decrypt_payload(bytes(password), encrypted_records)
        except PayloadDecryptionFailedError as exc:
            raise PayloadDecryptionFailedError(
                f"failed to decrypt attestation records - {exc}"
            ) from exc
    logger.debug("decrypted %d characters of attestation records", len(records))
    return records


def decrypt_shared_password_fields(
    data: str, private_key: str, provider: CryptoProvider | None = None
) -> list[str]:
    """Decrypt ``prefix.<password>.<payload1>.<payload2>...`` data.

    All payload fields are encrypted under the single password in the
    second field; they are returned in order.
    """
    if not data or not data.strip() or not private_key or not private_key.strip():
        raise EmptyParameterError("data", "private key")
    fields = data.strip().split(".")
    if len(fields) < 3:
        raise MalformedEnvelopeError(
            f"encrypted data must have at least 3 dot-separated fields, got {len(fields)}"
        )
    if fields[0] != ENVELOPE_PREFIX:
        raise MalformedEnvelopeError(f"unexpected envelope prefix: {fields[0]!r}")

    codec = EnvelopeCodec(provider)
    with scratch_buffer(codec.decrypt_password(fields[1], private_key)) as password:
        return [codec.decrypt_payload(bytes(password), field) for field in fields[2:]]


__all__ = ["decrypt_shared_password_fields", "get_attestation_records"]
