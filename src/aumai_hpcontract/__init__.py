"""aumai-hpcontract: Build, encrypt and sign IBM Hyper Protect contracts."""

from aumai_hpcontract.attestation import decrypt_shared_password_fields, get_attestation_records
from aumai_hpcontract.certificate import (
    CertificateDownloader,
    check_validity,
    download_encryption_certificates,
    get_encryption_certificate,
    validate_certificates,
)
from aumai_hpcontract.config import Settings
from aumai_hpcontract.contract import ContractBuilder, ContractVerifier
from aumai_hpcontract.envelope import EnvelopeCodec
from aumai_hpcontract.errors import ContractError
from aumai_hpcontract.image import select_image
from aumai_hpcontract.keys import KeyManager
from aumai_hpcontract.models import (
    CertificateReportEntry,
    CertificateStatus,
    CertificateValidity,
    ChecksummedOutput,
    Contract,
    CsrSubject,
    ImageVersion,
    Platform,
    VerificationResult,
)
from aumai_hpcontract.provider import CryptographyProvider, CryptoProvider
from aumai_hpcontract.schemas import SchemaValidator, verify_network_config
from aumai_hpcontract.sections import SectionEncoder, build_initdata
from aumai_hpcontract.versions import Constraint, resolve_latest

__version__ = "0.1.0"

__all__ = [
    "CertificateDownloader",
    "CertificateReportEntry",
    "CertificateStatus",
    "CertificateValidity",
    "ChecksummedOutput",
    "Constraint",
    "Contract",
    "ContractBuilder",
    "ContractError",
    "ContractVerifier",
    "CryptoProvider",
    "CryptographyProvider",
    "CsrSubject",
    "EnvelopeCodec",
    "ImageVersion",
    "KeyManager",
    "Platform",
    "SchemaValidator",
    "SectionEncoder",
    "Settings",
    "VerificationResult",
    "build_initdata",
    "check_validity",
    "decrypt_shared_password_fields",
    "download_encryption_certificates",
    "get_attestation_records",
    "get_encryption_certificate",
    "resolve_latest",
    "select_image",
    "validate_certificates",
    "verify_network_config",
]
