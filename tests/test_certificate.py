"""Tests for aumai_hpcontract.certificate: validity, reports, download and selection."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
import requests
import yaml

from aumai_hpcontract.certificate import (
    CertificateDownloader,
    check_for_encryption,
    check_validity,
    download_encryption_certificates,
    get_encryption_certificate,
    validate_certificates,
)
from aumai_hpcontract.errors import (
    CertificateDownloadError,
    CertificateExpiredError,
    CertificateParseError,
    EmptyParameterError,
    InvalidInputError,
    InvalidVersionError,
    NoMatchingVersionError,
)
from aumai_hpcontract.models import CertificateStatus

CertFactory = Callable[..., str]

FIXED_NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _session(status_code: int = 200, text: str = "PEM") -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.head.return_value.status_code = status_code
    session.get.return_value.text = text
    return session


# ===========================================================================
# check_validity
# ===========================================================================


class TestCheckValidity:
    def test_valid_without_warning(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=365, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.valid
        assert validity.days_left == 365
        assert validity.warning is False
        assert validity.message.startswith("certificate is valid for another 365 days")

    def test_expiry_date_format(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=365, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.expiry_date == "01-01-27 00:00:00 GMT"

    def test_warning_keeps_status_valid(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=30, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.valid
        assert validity.warning is True
        assert validity.days_left == 30
        assert validity.message.startswith("Warning: certificate will expire in 30 days")

    def test_warning_threshold_is_exclusive(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=180, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.warning is False

    def test_one_day_below_threshold_warns(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=179, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.valid
        assert validity.days_left == 179
        assert validity.warning is True

    def test_long_lived_certificate(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=400, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.valid
        assert validity.days_left == 400
        assert validity.warning is False

    def test_custom_warning_days(self, cert_factory: CertFactory) -> None:
        validity = check_validity(
            cert_factory(days=200, now=FIXED_NOW), now=FIXED_NOW, warning_days=365
        )
        assert validity.warning is True

    def test_expired(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=-1, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.expired
        assert validity.days_left == -1
        assert "already expired" in validity.message

    def test_expired_within_the_last_day_is_negative(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=-0.5, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.expired
        assert validity.days_left == -1

    def test_less_than_a_day_left_is_zero_days(self, cert_factory: CertFactory) -> None:
        validity = check_validity(cert_factory(days=0.5, now=FIXED_NOW), now=FIXED_NOW)
        assert validity.status is CertificateStatus.valid
        assert validity.days_left == 0
        assert validity.warning is True

    def test_garbage_raises_parse_error(self) -> None:
        with pytest.raises(CertificateParseError):
            check_validity("not a certificate")

    def test_empty_raises(self) -> None:
        with pytest.raises(EmptyParameterError):
            check_validity("")


class TestCheckForEncryption:
    def test_expired_refused(self, cert_factory: CertFactory) -> None:
        with pytest.raises(CertificateExpiredError):
            check_for_encryption(cert_factory(days=-10))

    def test_warning_logged(
        self, cert_factory: CertFactory, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="aumai_hpcontract.certificate"):
            validity = check_for_encryption(cert_factory(days=20))
        assert validity.warning is True
        assert "will expire" in caplog.text

    def test_valid_passes(self, encryption_cert: str) -> None:
        assert check_for_encryption(encryption_cert).status is CertificateStatus.valid


# ===========================================================================
# validate_certificates
# ===========================================================================


class TestValidateCertificates:
    def test_nested_report(self, cert_factory: CertFactory) -> None:
        certs = {
            "1.0.22": cert_factory(days=-5, now=FIXED_NOW),
            "1.0.23": cert_factory(days=400, now=FIXED_NOW),
        }
        report = validate_certificates(certs, now=FIXED_NOW)
        assert list(report) == ["1.0.22", "1.0.23"]
        assert report["1.0.22"].status is CertificateStatus.expired
        assert report["1.0.23"].status is CertificateStatus.valid
        assert report["1.0.23"].expiry_days == 400
        assert report["1.0.23"].cert == certs["1.0.23"]

    def test_report_serialises_with_camel_case_keys(self, cert_factory: CertFactory) -> None:
        report = validate_certificates({"1.0.23": cert_factory(days=10, now=FIXED_NOW)}, now=FIXED_NOW)
        dumped = report["1.0.23"].model_dump(mode="json", by_alias=True)
        assert set(dumped) == {"cert", "status", "expiryDays", "expiryDate", "message"}
        assert dumped["status"] == "valid"

    def test_accepts_json_text(self, cert_factory: CertFactory) -> None:
        text = json.dumps({"1.0.23": cert_factory(days=400, now=FIXED_NOW)})
        assert "1.0.23" in validate_certificates(text, now=FIXED_NOW)

    def test_accepts_yaml_text_with_nested_entries(self, cert_factory: CertFactory) -> None:
        text = yaml.safe_dump({"1.0.23": {"cert": cert_factory(days=400, now=FIXED_NOW)}})
        assert validate_certificates(text, now=FIXED_NOW)["1.0.23"].expiry_days == 400

    def test_empty_map_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_certificates({})

    def test_unparseable_certificate_names_version(self) -> None:
        with pytest.raises(CertificateParseError, match="1.0.99"):
            validate_certificates({"1.0.99": "garbage"})


# ===========================================================================
# get_encryption_certificate
# ===========================================================================


class TestGetEncryptionCertificate:
    def test_flat_mapping(self) -> None:
        certs = {"1.0.21": "a", "1.0.22": "b", "1.0.23": "c"}
        assert get_encryption_certificate(certs, "<1.0.23") == ("1.0.22", "b")

    def test_nested_json(self) -> None:
        text = json.dumps({"1.0.21": {"cert": "a"}, "1.0.22": {"cert": "b"}})
        assert get_encryption_certificate(text) == ("1.0.22", "b")

    def test_no_match(self) -> None:
        with pytest.raises(NoMatchingVersionError):
            get_encryption_certificate({"1.0.21": "a"}, ">=2.0.0")

    def test_invalid_key(self) -> None:
        with pytest.raises(InvalidVersionError):
            get_encryption_certificate({"latest": "a"})

    def test_empty(self) -> None:
        with pytest.raises(EmptyParameterError):
            get_encryption_certificate({})


# ===========================================================================
# CertificateDownloader
# ===========================================================================


class TestCertificateDownloader:
    def test_default_url(self) -> None:
        url = CertificateDownloader(session=_session()).certificate_url("1.0.22")
        assert url.endswith(
            "/s390x-22/ibm-hyper-protect-container-runtime-1-0-s390x-22-encrypt.crt"
        )

    def test_custom_template(self) -> None:
        downloader = CertificateDownloader(
            "https://certs.example.com/{major}.{minor}.{patch}.crt", session=_session()
        )
        assert downloader.certificate_url("1.0.23") == "https://certs.example.com/1.0.23.crt"

    def test_download_returns_mapping_in_order(self) -> None:
        session = _session(text="-----BEGIN CERTIFICATE-----")
        certs = CertificateDownloader(session=session, timeout=5).download(["1.0.22", "1.0.23"])
        assert list(certs) == ["1.0.22", "1.0.23"]
        assert session.get.call_count == 2
        session.head.assert_called_with(
            CertificateDownloader().certificate_url("1.0.23"),
            timeout=5,
            allow_redirects=True,
        )

    def test_missing_certificate(self) -> None:
        with pytest.raises(CertificateDownloadError, match="doesn't exist"):
            CertificateDownloader(session=_session(status_code=404)).download(["1.0.22"])

    def test_network_failure(self) -> None:
        session = _session()
        session.head.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(CertificateDownloadError):
            CertificateDownloader(session=session).download(["1.0.22"])

    def test_http_error_on_get(self) -> None:
        session = _session()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with pytest.raises(CertificateDownloadError):
            CertificateDownloader(session=session).download(["1.0.22"])

    def test_empty_versions(self) -> None:
        with pytest.raises(EmptyParameterError):
            CertificateDownloader(session=_session()).download([])

    def test_invalid_version(self) -> None:
        with pytest.raises(InvalidVersionError):
            CertificateDownloader(session=_session()).download(["one"])

    def test_module_level_helper(self) -> None:
        certs = download_encryption_certificates(["1.0.22"], session=_session(text="PEM"))
        assert certs == {"1.0.22": "PEM"}
