"""aumai-hpcontract quickstart: working demonstrations of the main features.

Run this file directly to verify your installation:

    python examples/quickstart.py

A self-signed certificate stands in for the Hyper Protect encryption
certificate, so every demo runs offline.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from aumai_hpcontract import (
    ContractBuilder,
    ContractVerifier,
    KeyManager,
    Platform,
    SectionEncoder,
    check_validity,
    get_encryption_certificate,
)

CONTRACT = {
    "workload": {
        "type": "workload",
        "compose": {"archive": "H4sIAAAAAAAA/+zSQQrCMBCF4ax7ihwgJDNJk55HIuuCooJWsLe3tAtB0FUrKPN2AhmZ"},
    },
    "env": {
        "type": "env",
        "logging": {"logRouter": {"hostname": "logs.example.com", "iamApiKey": "key"}},
    },
}


def _self_signed(private_pem: bytes, days: int, common_name: str) -> str:
    key = serialization.load_pem_private_key(private_pem, password=None)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(tz=UTC)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=days))
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


# ---------------------------------------------------------------------------
# Demo 1: sign, encrypt and verify a contract
# ---------------------------------------------------------------------------

def demo_sign_and_verify() -> None:
    print("\n=== Demo 1: Sign, Encrypt & Verify ===")

    km = KeyManager()
    platform_private, _ = km.generate_keypair(2048)
    signing_private, signing_public = km.generate_keypair(2048)
    encryption_cert = _self_signed(platform_private, 365, "hpcr-demo")

    builder = ContractBuilder(Platform.hpvs)
    result = builder.sign_and_encrypt(
        CONTRACT, encryption_cert, signing_private.decode("ascii")
    )
    signed = yaml.safe_load(result.data)
    print(f"  Contract keys: {sorted(signed)}")
    print(f"  Output sha256: {result.output_sha256[:16]}...")

    verifier = ContractVerifier()
    verification = verifier.verify(signed, signing_public.decode("ascii"))
    print(f"  Signature valid: {verification.valid}")
    assert verification.valid, verification.error

    decrypted = verifier.decrypt_contract(signed, platform_private.decode("ascii"))
    print(f"  Decrypted workload type: {yaml.safe_load(decrypted.workload)['type']}")
    print("  Demo 1 passed.")


# ---------------------------------------------------------------------------
# Demo 2: certificate validity and version selection
# ---------------------------------------------------------------------------

def demo_certificates() -> None:
    print("\n=== Demo 2: Certificates ===")

    km = KeyManager()
    private_pem, _ = km.generate_keypair(2048)
    certs = {
        "1.0.22": _self_signed(private_pem, 90, "hpcr-1.0.22"),
        "1.0.23": _self_signed(private_pem, 400, "hpcr-1.0.23"),
    }
    for version, pem in certs.items():
        validity = check_validity(pem)
        print(f"  {version}: {validity.status.value}, {validity.days_left} days left")

    version, _ = get_encryption_certificate(certs, ">=1.0.22, <1.0.23")
    print(f"  Selected certificate version: {version}")
    assert version == "1.0.22"
    print("  Demo 2 passed.")


# ---------------------------------------------------------------------------
# Demo 3: standalone section encoding
# ---------------------------------------------------------------------------

def demo_sections() -> None:
    print("\n=== Demo 3: Section Encoding ===")

    encoder = SectionEncoder()
    encoded = encoder.json('{"type": "env"}')
    print(f"  Base64 JSON: {encoded.data}")
    print(f"  Input sha256: {encoded.input_sha256[:16]}...")
    print("  Demo 3 passed.")


def main() -> None:
    print("aumai-hpcontract quickstart demos")
    print("=" * 45)

    demo_sign_and_verify()
    demo_certificates()
    demo_sections()

    print("\n" + "=" * 45)
    print("All demos completed successfully.")


if __name__ == "__main__":
    main()
