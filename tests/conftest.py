"""Shared test fixtures for aumai-hpcontract."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from aumai_hpcontract.keys import KeyManager

CertFactory = Callable[..., str]

# ---------------------------------------------------------------------------
# Key pairs
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def key_manager() -> KeyManager:
    return KeyManager()


@pytest.fixture(scope="session")
def signing_keypair(key_manager: KeyManager) -> tuple[str, str]:
    """(private_pem, public_pem) of the contract author."""
    private_pem, public_pem = key_manager.generate_keypair(2048)
    return private_pem.decode("ascii"), public_pem.decode("ascii")


@pytest.fixture(scope="session")
def platform_keypair(key_manager: KeyManager) -> tuple[str, str]:
    """(private_pem, public_pem) standing in for the Hyper Protect platform."""
    private_pem, public_pem = key_manager.generate_keypair(2048)
    return private_pem.decode("ascii"), public_pem.decode("ascii")


@pytest.fixture(scope="session")
def ca_keypair(key_manager: KeyManager) -> tuple[str, str]:
    private_pem, public_pem = key_manager.generate_keypair(2048)
    return private_pem.decode("ascii"), public_pem.decode("ascii")


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def _build_certificate(
    private_pem: str,
    not_before: datetime,
    not_after: datetime,
    common_name: str = "hpcr-test",
) -> str:
    key = serialization.load_pem_private_key(private_pem.encode("ascii"), password=None)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture(scope="session")
def cert_factory(platform_keypair: tuple[str, str]) -> CertFactory:
    """Build a self-signed platform certificate expiring *days* after *now*.

    Usage: ``cert_factory(days=365)`` or ``cert_factory(days=-1, now=reference)``.
    """
    private_pem, _ = platform_keypair

    def factory(days: float, now: datetime | None = None, common_name: str = "hpcr-test") -> str:
        reference = now or datetime.now(tz=UTC)
        not_after = reference + timedelta(days=days)
        not_before = min(reference, not_after) - timedelta(days=30)
        return _build_certificate(private_pem, not_before, not_after, common_name)

    return factory


@pytest.fixture(scope="session")
def encryption_cert(cert_factory: CertFactory) -> str:
    """A platform encryption certificate valid for ten years from today."""
    return cert_factory(days=3650)


@pytest.fixture(scope="session")
def ca_cert(ca_keypair: tuple[str, str]) -> str:
    private_pem, _ = ca_keypair
    now = datetime.now(tz=UTC)
    return _build_certificate(
        private_pem, now - timedelta(days=1), now + timedelta(days=3650), "test-ca"
    )


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

WORKLOAD = {
    "type": "workload",
    "compose": {"archive": "H4sIAAAAAAAA/+zSQQrCMBCF4ax7ihwgJDNJk55HIuuCooJWsLe3tAtB0FUrKPN2AhmZ"},
}

ENV = {
    "type": "env",
    "logging": {"logRouter": {"hostname": "logs.example.com", "iamApiKey": "key"}},
    "env": {"GREETING": "hello"},
}


@pytest.fixture()
def contract_dict() -> dict[str, object]:
    return {"workload": dict(WORKLOAD), "env": dict(ENV)}


@pytest.fixture()
def contract_yaml(contract_dict: dict[str, object]) -> str:
    return yaml.safe_dump(contract_dict, sort_keys=False)


@pytest.fixture()
def rhvs_contract_yaml() -> str:
    return yaml.safe_dump(
        {
            "workload": {"type": "workload", "play": {"archive": "UEsDBAoAAAAAAA=="}},
            "env": dict(ENV),
        },
        sort_keys=False,
    )


# ---------------------------------------------------------------------------
# On-disk fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def section_folder(tmp_path: Path) -> Path:
    """A folder with a compose file and a nested directory."""
    folder = tmp_path / "compose"
    folder.mkdir()
    (folder / "docker-compose.yaml").write_text(
        "services:\n  app:\n    image: nginx\n", encoding="utf-8"
    )
    nested = folder / "config"
    nested.mkdir()
    (nested / "app.conf").write_text("listen 8080\n", encoding="utf-8")
    return folder
