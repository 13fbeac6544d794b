"""Tests for aumai_hpcontract.config and aumai_hpcontract.logging_utils."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from aumai_hpcontract.config import DEFAULT_CERT_URL_TEMPLATE, Settings
from aumai_hpcontract.errors import InvalidInputError, InvalidPlatformError
from aumai_hpcontract.logging_utils import configure_logging
from aumai_hpcontract.models import Platform


class TestSettingsFromEnv:
    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        assert settings.cert_url_template == DEFAULT_CERT_URL_TEMPLATE
        assert settings.http_timeout == 30.0
        assert settings.expiry_warning_days == 180
        assert settings.rsa_key_size == 4096
        assert settings.log_level == "WARNING"
        assert settings.platform is Platform.hpvs
        assert settings.cert_version is None

    def test_overrides(self) -> None:
        settings = Settings.from_env(
            {
                "HPCONTRACT_HTTP_TIMEOUT": "5",
                "HPCONTRACT_EXPIRY_WARNING_DAYS": "90",
                "HPCONTRACT_PLATFORM": "hpcr-rhvs",
                "HPCONTRACT_CERT_URL_TEMPLATE": "https://example.com/{major}",
                "HPCONTRACT_CERT_VERSION": "1.0.22",
            }
        )
        assert settings.cert_version == "1.0.22"
        assert settings.http_timeout == 5.0
        assert settings.expiry_warning_days == 90
        assert settings.platform is Platform.hpcr_rhvs
        assert settings.cert_url_template == "https://example.com/{major}"

    def test_blank_values_keep_defaults(self) -> None:
        assert Settings.from_env({"HPCONTRACT_RSA_KEY_SIZE": "  "}).rsa_key_size == 4096

    def test_invalid_number(self) -> None:
        with pytest.raises(InvalidInputError):
            Settings.from_env({"HPCONTRACT_HTTP_TIMEOUT": "soon"})

    def test_key_size_floor(self) -> None:
        with pytest.raises(InvalidInputError):
            Settings.from_env({"HPCONTRACT_RSA_KEY_SIZE": "1024"})

    def test_unknown_platform(self) -> None:
        with pytest.raises(InvalidPlatformError):
            Settings.from_env({"HPCONTRACT_PLATFORM": "z16"})

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HPCONTRACT_LOG_LEVEL", "DEBUG")
        assert Settings.from_env().log_level == "DEBUG"


class TestConfigureLogging:
    def test_noop_when_handlers_present(self) -> None:
        root = logging.getLogger()
        handler = logging.NullHandler()
        root.addHandler(handler)
        try:
            with patch("logging.basicConfig") as basic_config:
                configure_logging("DEBUG")
            basic_config.assert_not_called()
        finally:
            root.removeHandler(handler)

    def test_configures_level_from_name(self) -> None:
        root = logging.getLogger()
        with (
            patch.object(root, "handlers", []),
            patch("logging.basicConfig") as basic_config,
        ):
            configure_logging("info")
        assert basic_config.call_args.kwargs["level"] == logging.INFO

    def test_unknown_level_falls_back_to_warning(self) -> None:
        root = logging.getLogger()
        with (
            patch.object(root, "handlers", []),
            patch("logging.basicConfig") as basic_config,
        ):
            configure_logging("chatty")
        assert basic_config.call_args.kwargs["level"] == logging.WARNING
