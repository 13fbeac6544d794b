"""Encryption-certificate lifecycle: validity, reporting, download and selection."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import requests
import yaml

from aumai_hpcontract.config import DEFAULT_CERT_URL_TEMPLATE
from aumai_hpcontract.errors import (
    CertificateDownloadError,
    CertificateExpiredError,
    CertificateParseError,
    EmptyParameterError,
    InvalidInputError,
    ProviderError,
)
from aumai_hpcontract.models import (
    CertificateReportEntry,
    CertificateStatus,
    CertificateValidity,
)
from aumai_hpcontract.provider import CryptographyProvider, CryptoProvider
from aumai_hpcontract.versions import parse_version, resolve_latest

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 180
_SECONDS_PER_DAY = 86400.0


# ---------------------------------------------------------------------------
# Validity
# ---------------------------------------------------------------------------


def _format_expiry(not_after: datetime) -> str:
    return not_after.astimezone(UTC).strftime("%d-%m-%y %H:%M:%S") + " GMT"


def check_validity(
    certificate_pem: str,
    now: datetime | None = None,
    warning_days: int = EXPIRY_WARNING_DAYS,
    provider: CryptoProvider | None = None,
) -> CertificateValidity:
    """Classify *certificate_pem* relative to *now*.

    ``status`` is ``expired`` once ``notAfter`` has passed and ``valid``
    otherwise.  A certificate with fewer than *warning_days* left stays
    ``valid`` but is flagged with ``warning=True`` and a warning message.
    ``days_left`` counts whole days: it is truncated while the certificate
    is valid and rounded down once it has expired, so an expired
    certificate always reports a negative value.

    Raises:
        EmptyParameterError: if *certificate_pem* is empty.
        CertificateParseError: if the PEM cannot be parsed as X.509.
    """
    if not certificate_pem or not certificate_pem.strip():
        raise EmptyParameterError("certificate")
    provider = provider or CryptographyProvider()
    try:
        certificate = provider.parse_certificate(certificate_pem)
    except ProviderError as exc:
        raise CertificateParseError(f"failed to parse certificate - {exc}") from exc

    not_after = certificate.not_valid_after_utc
    current = now or datetime.now(tz=UTC)
    days = (not_after - current).total_seconds() / _SECONDS_PER_DAY
    stamp = not_after.isoformat()

    if days < 0:
        return CertificateValidity(
            status=CertificateStatus.expired,
            days_left=math.floor(days),
            expiry_date=_format_expiry(not_after),
            not_after=not_after,
            message=f"certificate has already expired on {stamp}",
        )
    warning = days < warning_days
    if warning:
        message = f"Warning: certificate will expire in {days:.0f} days (on {stamp})"
    else:
        message = f"certificate is valid for another {days:.0f} days (until {stamp})"
    return CertificateValidity(
        status=CertificateStatus.valid,
        days_left=int(days),
        expiry_date=_format_expiry(not_after),
        not_after=not_after,
        warning=warning,
        message=message,
    )


def check_for_encryption(
    certificate_pem: str,
    now: datetime | None = None,
    warning_days: int = EXPIRY_WARNING_DAYS,
    provider: CryptoProvider | None = None,
) -> CertificateValidity:
    """Check an encryption certificate before a contract is encrypted with it.

    Raises:
        CertificateExpiredError: if the certificate has expired.
    """
    validity = check_validity(certificate_pem, now, warning_days, provider)
    if validity.status is CertificateStatus.expired:
        raise CertificateExpiredError(
            f"encryption certificate has already expired on {validity.expiry_date}"
        )
    if validity.warning:
        logger.warning("encryption %s", validity.message)
    return validity


def _load_mapping(data: Mapping[str, Any] | str) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    text = data.strip()
    try:
        loaded = json.loads(text) if text.startswith("{") else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidInputError(f"failed to parse certificate map - {exc}") from exc
    if not isinstance(loaded, Mapping):
        raise InvalidInputError("certificate map must be a mapping of version to certificate")
    return {str(key): value for key, value in loaded.items()}


def _certificate_of(version: str, payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("cert"), str):
        return payload["cert"]
    raise InvalidInputError(f"no certificate found for version {version}")


def validate_certificates(
    certificates: Mapping[str, Any] | str,
    now: datetime | None = None,
    warning_days: int = EXPIRY_WARNING_DAYS,
    provider: CryptoProvider | None = None,
) -> dict[str, CertificateReportEntry]:
    """Check every certificate of a ``version → certificate`` map.

    Args:
        certificates: Mapping (or its JSON/YAML text) from version to either
            a PEM string or a ``{"cert": pem, ...}`` entry.

    Returns:
        ``version → CertificateReportEntry`` in input order.

    Raises:
        InvalidInputError: if the map is empty or malformed.
        CertificateParseError: naming the version whose certificate is
            not parseable.
    """
    mapping = _load_mapping(certificates)
    if not mapping:
        raise InvalidInputError("no encryption certificate found")

    report: dict[str, CertificateReportEntry] = {}
    for version, payload in mapping.items():
        cert = _certificate_of(version, payload)
        try:
            validity = check_validity(cert, now, warning_days, provider)
        except (CertificateParseError, EmptyParameterError) as exc:
            raise CertificateParseError(
                f"failed to parse certificate for version {version} - {exc}"
            ) from exc
        if validity.warning or validity.status is CertificateStatus.expired:
            logger.warning("version %s: %s", version, validity.message)
        report[version] = CertificateReportEntry(
            cert=cert,
            status=validity.status,
            expiry_days=validity.days_left,
            expiry_date=validity.expiry_date,
            message=f"certificate version {version}: {validity.message}",
        )
    return report


def get_encryption_certificate(
    certificates: Mapping[str, Any] | str, constraint: str | None = None
) -> tuple[str, str]:
    """Return ``(version, pem)`` for the latest version matching *constraint*."""
    mapping = _load_mapping(certificates)
    if not mapping:
        raise EmptyParameterError("encryption certificates")
    version, payload = resolve_latest(mapping, constraint)
    return version, _certificate_of(version, payload)


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


class CertificateDownloader:
    """Fetch published encryption certificates over HTTP.

    Each call re-fetches; nothing is cached.
    """

    def __init__(
        self,
        url_template: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url_template = url_template or DEFAULT_CERT_URL_TEMPLATE
        self.timeout = timeout
        self._session = session or requests.Session()

    def certificate_url(self, version: str) -> str:
        """Render the download URL of *version*'s encryption certificate."""
        parsed = parse_version(version)
        try:
            return self.url_template.format(
                major=parsed.major,
                minor=parsed.minor,
                patch=parsed.patch,
                version=version,
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise InvalidInputError(
                f"invalid certificate URL template {self.url_template!r} - {exc}"
            ) from exc

    def exists(self, url: str) -> bool:
        try:
            response = self._session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            raise CertificateDownloadError(f"failed to check if URL exists - {exc}") from exc
        return 200 <= response.status_code < 300

    def fetch(self, url: str) -> str:
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise CertificateDownloadError(
                f"failed to download encryption certificate - {exc}"
            ) from exc
        return response.text

    def download(self, versions: Iterable[str]) -> dict[str, str]:
        """Download the certificate of every version in *versions*.

        Returns:
            ``version → PEM`` mapping in input order.

        Raises:
            EmptyParameterError: if *versions* is empty.
            CertificateDownloadError: if any certificate is missing or the
                request fails; no partial mapping is returned.
        """
        version_list = [v for v in versions if v and v.strip()]
        if not version_list:
            raise EmptyParameterError("versions")

        certificates: dict[str, str] = {}
        for version in version_list:
            url = self.certificate_url(version)
            if not self.exists(url):
                raise CertificateDownloadError(
                    f"encryption certificate doesn't exist in {url}"
                )
            certificates[version] = self.fetch(url)
            logger.info("downloaded encryption certificate %s", version)
        return certificates


def download_encryption_certificates(
    versions: Iterable[str],
    url_template: str | None = None,
    timeout: float = 30.0,
    session: requests.Session | None = None,
) -> dict[str, str]:
    """Download the encryption certificates of *versions* as ``version → PEM``."""
    downloader = CertificateDownloader(url_template, timeout=timeout, session=session)
    return downloader.download(versions)


__all__ = [
    "EXPIRY_WARNING_DAYS",
    "CertificateDownloader",
    "check_for_encryption",
    "check_validity",
    "download_encryption_certificates",
    "get_encryption_certificate",
    "validate_certificates",
]
