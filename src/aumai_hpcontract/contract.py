"""Contract validation, encryption, signing and verification."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import yaml
from pydantic import ValidationError

from aumai_hpcontract.certificate import (
    EXPIRY_WARNING_DAYS,
    CertificateDownloader,
    check_for_encryption,
    check_validity,
)
from aumai_hpcontract.envelope import EnvelopeCodec
from aumai_hpcontract.errors import (
    CertificateExpiredError,
    ContractError,
    EmptyParameterError,
    EncryptionFailedError,
    InvalidInputError,
    ProviderError,
    SchemaValidationError,
    SignatureVerificationError,
    SigningError,
)
from aumai_hpcontract.models import (
    CertificateStatus,
    ChecksummedOutput,
    Contract,
    CsrSubject,
    Platform,
    VerificationResult,
)
from aumai_hpcontract.provider import CryptoProvider
from aumai_hpcontract.schemas import SchemaValidator

logger = logging.getLogger(__name__)

SIGNING_KEY_FIELD = "signingKey"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def dump_yaml(data: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(data), sort_keys=False, default_flow_style=False)


def _load_yaml_mapping(text: str, what: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SchemaValidationError(f"failed to parse {what} - {exc}") from exc
    if not isinstance(data, Mapping):
        raise SchemaValidationError(f"{what} must be a YAML mapping")
    return {str(key): value for key, value in data.items()}


def _section_text(value: Any, name: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return dump_yaml(value)
    if value is None:
        raise SchemaValidationError(f"contract is missing the {name} section")
    raise SchemaValidationError(f"contract section {name} must be a string or mapping")


def load_contract(contract: str | Mapping[str, Any] | Contract) -> Contract:
    """Parse a contract into a :class:`Contract` with serialized sections.

    Sections given as nested mappings are serialized to YAML so that the
    rest of the pipeline always deals with opaque section strings.
    """
    if isinstance(contract, Contract):
        return contract
    data = (
        _load_yaml_mapping(contract, "contract")
        if isinstance(contract, str)
        else dict(contract)
    )
    signature = data.get("envWorkloadSignature")
    attestation_key = data.get("attestationPublicKey")
    return Contract(
        workload=_section_text(data.get("workload"), "workload"),
        env=_section_text(data.get("env"), "env"),
        env_workload_signature=str(signature) if signature else None,
        attestation_public_key=str(attestation_key) if attestation_key else None,
    )


def contract_document(contract: Contract) -> dict[str, Any]:
    """Structured form of a plaintext contract, as the schema sees it."""
    document: dict[str, Any] = {
        "workload": _load_yaml_mapping(contract.workload, "workload section"),
        "env": _load_yaml_mapping(contract.env, "env section"),
    }
    if contract.env_workload_signature:
        document["envWorkloadSignature"] = contract.env_workload_signature
    if contract.attestation_public_key:
        document["attestationPublicKey"] = contract.attestation_public_key
    return document


def inject_signing_key(env: str, signing_credential: str) -> str:
    """Return *env* with ``signingKey`` set to base64(*signing_credential*)."""
    data = _load_yaml_mapping(env, "env section")
    data[SIGNING_KEY_FIELD] = base64.b64encode(
        signing_credential.encode("utf-8")
    ).decode("ascii")
    return dump_yaml(data)


def _contract_text(contract: str | Mapping[str, Any] | Contract) -> str:
    if isinstance(contract, str):
        return contract
    if isinstance(contract, Contract):
        return dump_yaml(contract.to_document())
    return dump_yaml(contract)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Mapping):
        return not value
    return False


def _require(**values: Any) -> None:
    missing = [name for name, value in values.items() if _is_empty(value)]
    if missing:
        raise EmptyParameterError(*missing)


# ---------------------------------------------------------------------------
# ContractBuilder
# ---------------------------------------------------------------------------


class ContractBuilder:
    """Validate, encrypt and sign contracts for one target platform.

    When *certificate_version* is set, callers may omit the encryption
    certificate and the published certificate of that version is
    downloaded instead.
    """

    def __init__(
        self,
        platform: Platform | str | None = None,
        provider: CryptoProvider | None = None,
        validator: SchemaValidator | None = None,
        warning_days: int = EXPIRY_WARNING_DAYS,
        certificate_version: str | None = None,
        downloader: CertificateDownloader | None = None,
    ) -> None:
        self.platform = Platform.parse(platform)
        self._codec = EnvelopeCodec(provider)
        self._provider = self._codec.provider
        self._validator = validator or SchemaValidator()
        self._warning_days = warning_days
        self.certificate_version = certificate_version
        self._downloader = downloader

    @property
    def codec(self) -> EnvelopeCodec:
        return self._codec

    def validate(self, contract: str | Mapping[str, Any] | Contract) -> Contract:
        """Check *contract* against the platform schema and return it parsed.

        Raises:
            SchemaValidationError: if the contract or one of its sections is
                malformed or violates the schema.
        """
        parsed = load_contract(contract)
        self._validator.validate(contract_document(parsed), self.platform)
        return parsed

    def encryption_certificate(self, certificate: str | None = None) -> str:
        """Return *certificate*, or download the default one when it is empty.

        Raises:
            EmptyParameterError: if *certificate* is empty and no default
                certificate version is configured.
            CertificateDownloadError: if the default certificate cannot be
                fetched.
        """
        if not _is_empty(certificate):
            return certificate  # type: ignore[return-value]
        if _is_empty(self.certificate_version):
            raise EmptyParameterError("encryption_certificate")
        if self._downloader is None:
            self._downloader = CertificateDownloader()
        version = self.certificate_version
        logger.info("no encryption certificate given, downloading version %s", version)
        return self._downloader.download([version])[version]  # type: ignore[list-item]

    def sign_and_encrypt(
        self,
        contract: str | Mapping[str, Any] | Contract,
        encryption_certificate: str | None,
        private_key: str,
        signing_credential: str | None = None,
    ) -> ChecksummedOutput:
        """Produce a signed and encrypted contract.

        Args:
            contract: Plaintext contract with ``workload`` and ``env`` sections.
            encryption_certificate: PEM certificate of the platform; both
                sections are encrypted for it.  When empty, the default
                certificate is used (see :meth:`encryption_certificate`).
            private_key: PEM private key that signs the encrypted sections.
            signing_credential: PEM public key or certificate injected into
                ``env`` as ``signingKey``.  Defaults to the public key of
                *private_key*.

        Returns:
            :class:`ChecksummedOutput` whose ``data`` is the final contract
            YAML with ``workload``, ``env``, ``envWorkloadSignature`` and, when
            supplied, ``attestationPublicKey``.
        """
        _require(contract=contract, private_key=private_key)
        parsed = self.validate(contract)
        certificate = self.encryption_certificate(encryption_certificate)
        return self._seal(contract, parsed, certificate, private_key, signing_credential)

    def _seal(
        self,
        contract: str | Mapping[str, Any] | Contract,
        parsed: Contract,
        encryption_certificate: str,
        private_key: str,
        signing_credential: str | None,
    ) -> ChecksummedOutput:
        # *parsed* has already passed schema validation.
        check_for_encryption(
            encryption_certificate, warning_days=self._warning_days, provider=self._provider
        )

        if signing_credential is None:
            try:
                signing_credential = self._provider.public_key_from_private(private_key)
            except ProviderError as exc:
                raise SigningError(f"failed to generate public key - {exc}") from exc

        signed = self.assemble(parsed, encryption_certificate, private_key, signing_credential)
        final = dump_yaml(signed.to_document())
        logger.info("signed and encrypted contract for %s", self.platform.value)
        return ChecksummedOutput(
            data=final,
            input_sha256=sha256_hex(_contract_text(contract)),
            output_sha256=sha256_hex(final),
        )

    def create_signing_certificate(
        self,
        ca_certificate: str,
        ca_key: str,
        expiry_days: int,
        private_key: str | None = None,
        csr_subject: CsrSubject | Mapping[str, Any] | str | None = None,
        csr_pem: str | None = None,
    ) -> str:
        """Issue a time-limited signing certificate from the CA.

        Exactly one of *csr_subject* (with *private_key*) or *csr_pem* must
        be supplied.

        Returns:
            The PEM certificate, valid for *expiry_days* from now.

        Raises:
            InvalidInputError: if both or neither CSR inputs are supplied,
                the subject fields are invalid, or *expiry_days* is not
                positive.  No certificate is issued in these cases.
            SigningError: if CSR generation or CA signing fails.
        """
        _require(ca_certificate=ca_certificate, ca_key=ca_key)
        has_subject = not _is_empty(csr_subject)
        has_pem = not _is_empty(csr_pem)
        if has_subject == has_pem:
            raise InvalidInputError(
                "exactly one of CSR subject fields or a CSR PEM must be supplied"
            )
        if isinstance(expiry_days, bool) or not isinstance(expiry_days, int) or expiry_days <= 0:
            raise InvalidInputError(f"expiry days must be a positive integer, got {expiry_days!r}")

        if has_subject:
            _require(private_key=private_key)
            subject = self._parse_subject(csr_subject)
            try:
                csr = self._provider.build_csr(subject, private_key)  # type: ignore[arg-type]
            except ProviderError as exc:
                raise SigningError(f"failed to generate CSR - {exc}") from exc
        else:
            csr = csr_pem  # type: ignore[assignment]

        try:
            certificate = self._provider.sign_csr(csr, ca_certificate, ca_key, expiry_days)
        except ProviderError as exc:
            raise SigningError(f"failed to create signing certificate - {exc}") from exc
        logger.info("issued signing certificate valid for %d days", expiry_days)
        return certificate

    def sign_and_encrypt_with_expiry(
        self,
        contract: str | Mapping[str, Any] | Contract,
        encryption_certificate: str | None,
        private_key: str,
        ca_certificate: str,
        ca_key: str,
        expiry_days: int,
        csr_subject: CsrSubject | Mapping[str, Any] | str | None = None,
        csr_pem: str | None = None,
    ) -> ChecksummedOutput:
        """Like :meth:`sign_and_encrypt`, with a CA-issued signing certificate.

        The certificate embedded in ``env`` expires after *expiry_days*, so
        the contract stops being accepted once it does.  The contract is
        validated once, before any certificate is issued.
        """
        _require(
            contract=contract,
            private_key=private_key,
            ca_certificate=ca_certificate,
            ca_key=ca_key,
        )
        parsed = self.validate(contract)
        certificate = self.encryption_certificate(encryption_certificate)
        signing_certificate = self.create_signing_certificate(
            ca_certificate,
            ca_key,
            expiry_days,
            private_key=private_key,
            csr_subject=csr_subject,
            csr_pem=csr_pem,
        )
        return self._seal(contract, parsed, certificate, private_key, signing_certificate)

    def assemble(
        self,
        contract: Contract,
        encryption_certificate: str,
        private_key: str,
        signing_credential: str,
    ) -> Contract:
        """Encrypt both sections, inject the credential and sign.

        The signature covers the exact concatenation of the encrypted
        workload and encrypted env strings.
        """
        _require(signing_credential=signing_credential)
        encrypted_workload = self._encrypt_section(
            contract.workload, encryption_certificate, "workload"
        )
        updated_env = inject_signing_key(contract.env, signing_credential)
        encrypted_env = self._encrypt_section(updated_env, encryption_certificate, "env")

        try:
            raw_signature = self._provider.sign(
                (encrypted_workload + encrypted_env).encode("utf-8"), private_key
            )
        except ProviderError as exc:
            raise SigningError(f"failed to sign contract - {exc}") from exc

        encrypted_attestation_key = None
        if contract.attestation_public_key:
            encrypted_attestation_key = self._encrypt_section(
                contract.attestation_public_key, encryption_certificate, "attestationPublicKey"
            )

        return Contract(
            workload=encrypted_workload,
            env=encrypted_env,
            env_workload_signature=base64.b64encode(raw_signature).decode("ascii"),
            attestation_public_key=encrypted_attestation_key,
        )

    def _encrypt_section(self, text: str, certificate: str, name: str) -> str:
        try:
            return self._codec.encrypt(text, certificate)
        except (EncryptionFailedError, EmptyParameterError) as exc:
            raise EncryptionFailedError(f"failed to encrypt {name} - {exc}") from exc

    @staticmethod
    def _parse_subject(subject: CsrSubject | Mapping[str, Any] | str | None) -> CsrSubject:
        if isinstance(subject, CsrSubject):
            return subject
        try:
            if isinstance(subject, str):
                return CsrSubject.model_validate_json(subject)
            return CsrSubject.model_validate(subject)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid CSR subject fields - {exc}") from exc


# ---------------------------------------------------------------------------
# ContractVerifier
# ---------------------------------------------------------------------------


class ContractVerifier:
    """Verify and decrypt signed contracts on the consuming side."""

    def __init__(self, provider: CryptoProvider | None = None) -> None:
        self._codec = EnvelopeCodec(provider)
        self._provider = self._codec.provider

    def verify_signature(
        self,
        signed_contract: str | Mapping[str, Any] | Contract,
        credential: str,
        now: datetime | None = None,
    ) -> None:
        """Check ``envWorkloadSignature`` against *credential*.

        *credential* is the signer's PEM public key or signing certificate.
        For a certificate, its expiry is enforced as well.

        Raises:
            SignatureVerificationError: if the signature is missing,
                malformed or does not match.
            CertificateExpiredError: if the signing certificate has expired.
        """
        _require(signed_contract=signed_contract, credential=credential)
        contract = load_contract(signed_contract)
        if not contract.env_workload_signature:
            raise SignatureVerificationError("contract has no envWorkloadSignature")
        try:
            signature = base64.b64decode(contract.env_workload_signature, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SignatureVerificationError(f"signature is not valid base64 - {exc}") from exc

        try:
            self._provider.verify(
                (contract.workload + contract.env).encode("utf-8"), signature, credential
            )
        except ProviderError as exc:
            raise SignatureVerificationError(
                f"contract signature verification failed - {exc}"
            ) from exc

        if "BEGIN CERTIFICATE" in credential:
            validity = check_validity(credential, now, provider=self._provider)
            if validity.status is CertificateStatus.expired:
                raise CertificateExpiredError(
                    f"signing certificate has already expired on {validity.expiry_date}"
                )

    def verify(
        self,
        signed_contract: str | Mapping[str, Any] | Contract,
        credential: str,
        now: datetime | None = None,
    ) -> VerificationResult:
        """Non-raising form of :meth:`verify_signature`."""
        try:
            self.verify_signature(signed_contract, credential, now)
        except ContractError as exc:
            return VerificationResult(valid=False, error=str(exc))
        not_after = None
        if "BEGIN CERTIFICATE" in credential:
            not_after = self._provider.parse_certificate(credential).not_valid_after_utc
        return VerificationResult(valid=True, certificate_not_after=not_after)

    def decrypt_contract(
        self, signed_contract: str | Mapping[str, Any] | Contract, private_key: str
    ) -> Contract:
        """Decrypt every encrypted section of *signed_contract*."""
        _require(signed_contract=signed_contract, private_key=private_key)
        contract = load_contract(signed_contract)
        attestation_key = None
        if contract.attestation_public_key:
            attestation_key = self._codec.decrypt(contract.attestation_public_key, private_key)
        return Contract(
            workload=self._codec.decrypt(contract.workload, private_key),
            env=self._codec.decrypt(contract.env, private_key),
            env_workload_signature=contract.env_workload_signature,
            attestation_public_key=attestation_key,
        )

    @staticmethod
    def signing_credential(env: str) -> str:
        """Extract the PEM credential embedded in a decrypted ``env`` section."""
        data = _load_yaml_mapping(env, "env section")
        encoded = data.get(SIGNING_KEY_FIELD)
        if not isinstance(encoded, str) or not encoded:
            raise InvalidInputError("env section has no signingKey")
        try:
            return base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError(f"signingKey is not valid base64 - {exc}") from exc


__all__ = [
    "SIGNING_KEY_FIELD",
    "ContractBuilder",
    "ContractVerifier",
    "contract_document",
    "dump_yaml",
    "inject_signing_key",
    "load_contract",
    "sha256_hex",
]
