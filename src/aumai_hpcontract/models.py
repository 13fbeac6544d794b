"""Pydantic models for aumai-hpcontract."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from aumai_hpcontract.errors import InvalidPlatformError


class Platform(str, Enum):
    """Hyper Protect platform variants a contract can target."""

    hpvs = "hpvs"
    hpcr_rhvs = "hpcr-rhvs"
    hpcc_peerpod = "hpcc-peerpod"

    @classmethod
    def parse(cls, value: str | Platform | None) -> Platform:
        """Return the platform for *value*; empty selects ``hpvs``."""
        if isinstance(value, Platform):
            return value
        if not value:
            return cls.hpvs
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidPlatformError(
                f"invalid Hyper Protect platform: {value!r}"
            ) from None


class CertificateStatus(str, Enum):
    valid = "valid"
    expired = "expired"


class CertificateValidity(BaseModel):
    """Outcome of checking one certificate against the current time."""

    status: CertificateStatus
    days_left: int
    expiry_date: str  # "DD-MM-YY HH:MM:SS GMT"
    not_after: datetime
    warning: bool = False
    message: str = ""


class CertificateReportEntry(BaseModel):
    """One version's entry in an encryption-certificate report."""

    model_config = ConfigDict(populate_by_name=True)

    cert: str
    status: CertificateStatus
    expiry_days: int = Field(alias="expiryDays")
    expiry_date: str = Field(alias="expiryDate")
    message: str = ""


class CsrSubject(BaseModel):
    """Subject fields used to build a certificate signing request."""

    country: str = Field(min_length=2, max_length=2)
    state: str
    location: str
    org: str
    unit: str
    domain: str
    mail: str


class Contract(BaseModel):
    """A contract document; sections are opaque serialized sub-documents."""

    model_config = ConfigDict(populate_by_name=True)

    workload: str
    env: str
    env_workload_signature: str | None = Field(
        default=None, alias="envWorkloadSignature"
    )
    attestation_public_key: str | None = Field(
        default=None, alias="attestationPublicKey"
    )

    def to_document(self) -> dict[str, Any]:
        """Wire representation; absent optional keys are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChecksummedOutput(BaseModel):
    """Produced data plus SHA-256 digests of the input and of the output."""

    data: str
    input_sha256: str = Field(min_length=64, max_length=64)
    output_sha256: str = Field(min_length=64, max_length=64)


class VerificationResult(BaseModel):
    """Outcome of verifying a signed contract."""

    valid: bool
    error: str | None = None
    certificate_not_after: datetime | None = None


class ImageChecksums(BaseModel):
    sha256: str = ""


class ImageFile(BaseModel):
    checksums: ImageChecksums = Field(default_factory=ImageChecksums)


class OperatingSystem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    architecture: str = ""


class ImageCandidate(BaseModel):
    """An entry of an IBM Cloud image listing (terraform, CLI or API shape)."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    status: str = ""
    visibility: str = ""
    architecture: str = ""
    os: str = ""
    checksum: str = ""
    file: ImageFile | None = None
    operating_system: dict[str, Any] | list[dict[str, Any]] | None = None

    def normalized(self) -> ImageCandidate:
        """Fill architecture, os and checksum from the nested CLI/API fields."""
        raw = self.operating_system
        if isinstance(raw, list):
            raw = raw[0] if raw else None
        os_info = OperatingSystem.model_validate(raw) if raw else OperatingSystem()

        checksum = self.checksum
        if not checksum and self.file is not None:
            checksum = self.file.checksums.sha256

        return self.model_copy(
            update={
                "architecture": self.architecture or os_info.architecture,
                "os": self.os or os_info.name,
                "checksum": checksum,
            }
        )


class ImageVersion(BaseModel):
    """A Hyper Protect base image with the version parsed from its name."""

    id: str
    name: str
    checksum: str
    version: str


__all__ = [
    "CertificateReportEntry",
    "CertificateStatus",
    "CertificateValidity",
    "ChecksummedOutput",
    "Contract",
    "CsrSubject",
    "ImageCandidate",
    "ImageChecksums",
    "ImageFile",
    "ImageVersion",
    "OperatingSystem",
    "Platform",
    "VerificationResult",
]
