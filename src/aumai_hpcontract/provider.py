"""Cryptographic provider interface and its ``cryptography`` implementation.

The contract pipeline never touches primitives directly.  It talks to a
:class:`CryptoProvider`, which keeps the protocol logic (envelope layout,
what gets signed, which certificate is embedded) independent of the
backend that performs RSA, AES and X.509 work.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Protocol

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.x509.oid import NameOID

from aumai_hpcontract.errors import ProviderError
from aumai_hpcontract.models import CsrSubject

# OpenSSL ``enc -aes-256-cbc -pbkdf2`` framing: magic, 8-byte salt, ciphertext.
SALT_MAGIC = b"Salted__"
SALT_LENGTH = 8
PBKDF2_ITERATIONS = 10000
_KEY_LENGTH = 32
_IV_LENGTH = 16
_BLOCK_SIZE = 128

_PROVIDER_FAILURES = (ValueError, TypeError, UnsupportedAlgorithm)


class CryptoProvider(Protocol):
    """Operations the contract pipeline needs from a crypto backend.

    Every method raises :class:`~aumai_hpcontract.errors.ProviderError` on
    failure.
    """

    def random_bytes(self, length: int) -> bytes: ...

    def asymmetric_encrypt(self, data: bytes, certificate_pem: str) -> bytes: ...

    def asymmetric_decrypt(self, data: bytes, private_key_pem: str) -> bytes: ...

    def symmetric_encrypt(self, passphrase: bytes, plaintext: bytes) -> bytes: ...

    def symmetric_decrypt(self, passphrase: bytes, ciphertext: bytes) -> bytes: ...

    def sign(self, data: bytes, private_key_pem: str) -> bytes: ...

    def verify(self, data: bytes, signature: bytes, credential_pem: str) -> None: ...

    def public_key_from_private(self, private_key_pem: str) -> str: ...

    def parse_certificate(self, certificate_pem: str) -> x509.Certificate: ...

    def build_csr(self, subject: CsrSubject, private_key_pem: str) -> str: ...

    def sign_csr(
        self, csr_pem: str, ca_certificate_pem: str, ca_key_pem: str, expiry_days: int
    ) -> str: ...


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_private_key(private_key_pem: str) -> rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey:
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.strip().encode("utf-8"), password=None
        )
    except _PROVIDER_FAILURES as exc:
        raise ProviderError(f"failed to load private key - {exc}") from exc
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ProviderError(
            f"unsupported private key type: {type(key).__name__}. "
            "Only RSA and ECDSA keys are supported."
        )
    return key


def _load_public_key(pem: str) -> rsa.RSAPublicKey | ec.EllipticCurvePublicKey:
    """Load a public key from either a public-key PEM or a certificate PEM."""
    data = pem.strip().encode("utf-8")
    try:
        if b"BEGIN CERTIFICATE" in data:
            key = x509.load_pem_x509_certificate(data).public_key()
        else:
            key = serialization.load_pem_public_key(data)
    except _PROVIDER_FAILURES as exc:
        raise ProviderError(f"failed to load public key - {exc}") from exc
    if not isinstance(key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
        raise ProviderError(f"unsupported public key type: {type(key).__name__}")
    return key


def _derive_key_iv(passphrase: bytes, salt: bytes) -> tuple[bytes, bytes]:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=_KEY_LENGTH + _IV_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    material = kdf.derive(passphrase)
    return material[:_KEY_LENGTH], material[_KEY_LENGTH:]


# ---------------------------------------------------------------------------
# CryptographyProvider
# ---------------------------------------------------------------------------


class CryptographyProvider:
    """In-process provider backed by the ``cryptography`` package.

    Output is interchangeable with the OpenSSL command line: RSA uses
    PKCS#1 v1.5 padding (``rsautl -encrypt``), payloads use the
    ``enc -aes-256-cbc -pbkdf2`` salted format and signatures are
    ``dgst -sha256 -sign`` PKCS#1 v1.5 signatures.
    """

    def random_bytes(self, length: int) -> bytes:
        return os.urandom(length)

    def asymmetric_encrypt(self, data: bytes, certificate_pem: str) -> bytes:
        public_key = _load_public_key(certificate_pem)
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise ProviderError("encryption certificate must carry an RSA public key")
        try:
            return public_key.encrypt(data, asym_padding.PKCS1v15())
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"RSA encryption failed - {exc}") from exc

    def asymmetric_decrypt(self, data: bytes, private_key_pem: str) -> bytes:
        private_key = _load_private_key(private_key_pem)
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ProviderError("decryption requires an RSA private key")
        try:
            return private_key.decrypt(data, asym_padding.PKCS1v15())
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"RSA decryption failed - {exc}") from exc

    def symmetric_encrypt(self, passphrase: bytes, plaintext: bytes) -> bytes:
        salt = os.urandom(SALT_LENGTH)
        key, iv = _derive_key_iv(passphrase, salt)
        padder = padding.PKCS7(_BLOCK_SIZE).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return SALT_MAGIC + salt + encryptor.update(padded) + encryptor.finalize()

    def symmetric_decrypt(self, passphrase: bytes, ciphertext: bytes) -> bytes:
        header_length = len(SALT_MAGIC) + SALT_LENGTH
        if not ciphertext.startswith(SALT_MAGIC):
            raise ProviderError("ciphertext is missing the salt header")
        body = ciphertext[header_length:]
        if not body or len(body) % (_BLOCK_SIZE // 8):
            raise ProviderError("ciphertext length is not a whole number of blocks")
        salt = ciphertext[len(SALT_MAGIC) : header_length]
        key, iv = _derive_key_iv(passphrase, salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(_BLOCK_SIZE).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            raise ProviderError("bad decrypt - invalid padding") from exc

    def sign(self, data: bytes, private_key_pem: str) -> bytes:
        private_key = _load_private_key(private_key_pem)
        try:
            if isinstance(private_key, rsa.RSAPrivateKey):
                return private_key.sign(data, asym_padding.PKCS1v15(), hashes.SHA256())
            return private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"signing failed - {exc}") from exc

    def verify(self, data: bytes, signature: bytes, credential_pem: str) -> None:
        public_key = _load_public_key(credential_pem)
        try:
            if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(
                    signature, data, asym_padding.PKCS1v15(), hashes.SHA256()
                )
            else:
                public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        except (InvalidSignature, *_PROVIDER_FAILURES) as exc:
            raise ProviderError("signature does not match data") from exc

    def public_key_from_private(self, private_key_pem: str) -> str:
        private_key = _load_private_key(private_key_pem)
        return private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def parse_certificate(self, certificate_pem: str) -> x509.Certificate:
        try:
            return x509.load_pem_x509_certificate(certificate_pem.strip().encode("utf-8"))
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"failed to parse certificate - {exc}") from exc

    def build_csr(self, subject: CsrSubject, private_key_pem: str) -> str:
        private_key = _load_private_key(private_key_pem)
        try:
            name = x509.Name(
                [
                    x509.NameAttribute(NameOID.COUNTRY_NAME, subject.country),
                    x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, subject.state),
                    x509.NameAttribute(NameOID.LOCALITY_NAME, subject.location),
                    x509.NameAttribute(NameOID.ORGANIZATION_NAME, subject.org),
                    x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, subject.unit),
                    x509.NameAttribute(NameOID.COMMON_NAME, subject.domain),
                    x509.NameAttribute(NameOID.EMAIL_ADDRESS, subject.mail),
                ]
            )
            csr = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(name)
                .sign(private_key, hashes.SHA256())
            )
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"failed to build CSR - {exc}") from exc
        return csr.public_bytes(serialization.Encoding.PEM).decode("ascii")

    def sign_csr(
        self, csr_pem: str, ca_certificate_pem: str, ca_key_pem: str, expiry_days: int
    ) -> str:
        try:
            csr = x509.load_pem_x509_csr(csr_pem.strip().encode("utf-8"))
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"failed to parse CSR - {exc}") from exc
        if not csr.is_signature_valid:
            raise ProviderError("CSR signature is invalid")

        ca_certificate = self.parse_certificate(ca_certificate_pem)
        ca_key = _load_private_key(ca_key_pem)
        now = datetime.now(tz=UTC)
        try:
            certificate = (
                x509.CertificateBuilder()
                .subject_name(csr.subject)
                .issuer_name(ca_certificate.subject)
                .public_key(csr.public_key())
                .serial_number(x509.random_serial_number())
                .not_valid_before(now)
                .not_valid_after(now + timedelta(days=expiry_days))
                .sign(ca_key, hashes.SHA256())
            )
        except _PROVIDER_FAILURES as exc:
            raise ProviderError(f"failed to sign CSR - {exc}") from exc
        return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


__all__ = [
    "PBKDF2_ITERATIONS",
    "SALT_LENGTH",
    "SALT_MAGIC",
    "CryptoProvider",
    "CryptographyProvider",
]
