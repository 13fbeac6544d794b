"""Tests for aumai_hpcontract.attestation."""

from __future__ import annotations

import base64

import pytest

from aumai_hpcontract.attestation import decrypt_shared_password_fields, get_attestation_records
from aumai_hpcontract.envelope import ENVELOPE_PREFIX, PASSWORD_LENGTH, EnvelopeCodec
from aumai_hpcontract.errors import (
    EmptyParameterError,
    MalformedEnvelopeError,
    PayloadDecryptionFailedError,
)
from aumai_hpcontract.provider import CryptographyProvider

RECORDS = (
    "25.4.0.0.0.0.0 cidata/user-data\n"
    "0d4f5cd0fb0a1c0c2b6e5b3a8e0dd0b62c8b52df93d0ed3a3f3e6b7bb1b0c9f0 root.tar.gz\n"
)


def _multi_field(certificate: str, payloads: list[str]) -> str:
    provider = CryptographyProvider()
    password = b"a" * PASSWORD_LENGTH
    encrypted_password = base64.b64encode(provider.asymmetric_encrypt(password, certificate))
    fields = [
        base64.b64encode(provider.symmetric_encrypt(password, text.encode())).decode()
        for text in payloads
    ]
    return ".".join([ENVELOPE_PREFIX, encrypted_password.decode(), *fields])


class TestGetAttestationRecords:
    def test_decrypts_records(
        self, encryption_cert: str, platform_keypair: tuple[str, str]
    ) -> None:
        data = EnvelopeCodec().encrypt(RECORDS, encryption_cert)
        assert get_attestation_records(data, platform_keypair[0]) == RECORDS

    def test_empty_inputs(self, platform_keypair: tuple[str, str]) -> None:
        with pytest.raises(EmptyParameterError):
            get_attestation_records("", platform_keypair[0])
        with pytest.raises(EmptyParameterError):
            get_attestation_records("hyper-protect-basic.a.b", "")

    def test_malformed(self, platform_keypair: tuple[str, str]) -> None:
        with pytest.raises(MalformedEnvelopeError):
            get_attestation_records("hyper-protect-basic.only", platform_keypair[0])

    def test_corrupt_records(
        self, encryption_cert: str, platform_keypair: tuple[str, str]
    ) -> None:
        prefix, password, _ = EnvelopeCodec().encrypt(RECORDS, encryption_cert).split(".")
        with pytest.raises(PayloadDecryptionFailedError, match="attestation records"):
            get_attestation_records(f"{prefix}.{password}.!!!!", platform_keypair[0])


class TestSharedPasswordFields:
    def test_decrypts_every_payload_in_order(
        self, encryption_cert: str, platform_keypair: tuple[str, str]
    ) -> None:
        data = _multi_field(encryption_cert, ["first", "second", "third"])
        assert decrypt_shared_password_fields(data, platform_keypair[0]) == [
            "first",
            "second",
            "third",
        ]

    def test_single_payload(
        self, encryption_cert: str, platform_keypair: tuple[str, str]
    ) -> None:
        data = _multi_field(encryption_cert, ["only"])
        assert decrypt_shared_password_fields(data, platform_keypair[0]) == ["only"]

    def test_too_few_fields(self, platform_keypair: tuple[str, str]) -> None:
        with pytest.raises(MalformedEnvelopeError):
            decrypt_shared_password_fields("hyper-protect-basic.pw", platform_keypair[0])

    def test_wrong_prefix(self, platform_keypair: tuple[str, str]) -> None:
        with pytest.raises(MalformedEnvelopeError):
            decrypt_shared_password_fields("other.pw.a.b", platform_keypair[0])
