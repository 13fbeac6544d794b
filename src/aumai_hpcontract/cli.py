"""CLI entry point for aumai-hpcontract."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import click
import yaml

from aumai_hpcontract.attestation import get_attestation_records
from aumai_hpcontract.certificate import (
    CertificateDownloader,
    check_validity,
    download_encryption_certificates,
    get_encryption_certificate,
    validate_certificates,
)
from aumai_hpcontract.config import Settings
from aumai_hpcontract.contract import ContractBuilder, ContractVerifier
from aumai_hpcontract.errors import ContractError
from aumai_hpcontract.image import select_image
from aumai_hpcontract.keys import KeyManager
from aumai_hpcontract.logging_utils import configure_logging
from aumai_hpcontract.models import ChecksummedOutput, Platform
from aumai_hpcontract.schemas import verify_network_config
from aumai_hpcontract.sections import SectionEncoder, build_initdata

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PLATFORMS = [platform.value for platform in Platform]
_FILE = click.Path(exists=True, dir_okay=False)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(exc: Exception) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


def _run(action: Callable[[], T]) -> T:
    try:
        return action()
    except (ContractError, OSError, ValueError) as exc:
        _fail(exc)


def _read(path: str | None) -> str | None:
    if path is None:
        return None
    return Path(path).read_text(encoding="utf-8")


def _emit(text: str, output: str | None) -> None:
    if output is None:
        click.echo(text.rstrip("\n"))
        return
    Path(output).write_text(text, encoding="utf-8")
    click.echo(f"Written to: {output}", err=True)


def _emit_checksummed(result: ChecksummedOutput, output: str | None, json_output: bool) -> None:
    if json_output:
        _emit(result.model_dump_json(indent=2), output)
        return
    _emit(result.data, output)
    logger.info("input sha256 %s, output sha256 %s", result.input_sha256, result.output_sha256)


def _dump(data: Any, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    return json.dumps(data, indent=2)


def _settings(ctx: click.Context) -> Settings:
    return ctx.find_object(Settings) or Settings()


def _builder(
    ctx: click.Context, platform: str | None, cert_version: str | None
) -> ContractBuilder:
    settings = _settings(ctx)
    return ContractBuilder(
        platform or settings.platform,
        warning_days=settings.expiry_warning_days,
        certificate_version=cert_version or settings.cert_version,
        downloader=CertificateDownloader(
            settings.cert_url_template, timeout=settings.http_timeout
        ),
    )


def _platform_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--platform",
        type=click.Choice(_PLATFORMS),
        default=None,
        help="Target platform (default: HPCONTRACT_PLATFORM or hpvs).",
    )(func)


def _cert_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--cert-version",
        default=None,
        help="Certificate version to download when --cert is omitted "
        "(default: HPCONTRACT_CERT_VERSION).",
    )(func)
    return click.option(
        "--cert", type=_FILE, default=None, help="Encryption certificate PEM."
    )(func)


_output_option = click.option(
    "--output", default=None, metavar="PATH", help="Write the result to PATH instead of stdout."
)
_json_option = click.option(
    "--json-output", is_flag=True, help="Emit data together with its SHA-256 checksums as JSON."
)

# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aumai-hpcontract")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default: HPCONTRACT_LOG_LEVEL or WARNING).",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """AumAI HPContract: build, encrypt and sign Hyper Protect contracts."""
    settings = _run(Settings.from_env)
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command("keygen")
@click.option(
    "--output",
    default="keys",
    show_default=True,
    metavar="DIR",
    help="Directory to write private.pem and public.pem.",
)
@click.option("--bits", type=int, default=None, help="RSA modulus size (default: 4096).")
@click.pass_context
def keygen_command(ctx: click.Context, output: str, bits: int | None) -> None:
    """Generate an RSA key pair for contract signing."""
    size = bits or _settings(ctx).rsa_key_size
    km = KeyManager()
    private_pem, public_pem = km.generate_keypair(size)
    km.save_keypair(private_pem, public_pem, output)
    click.echo(f"Key pair (RSA {size}) written to '{output}/'")
    click.echo(f"  Private: {output}/private.pem")
    click.echo(f"  Public : {output}/public.pem")


@main.command("encrypt")
@click.option("--input", "input_path", required=True, metavar="PATH", help="Text/JSON file or folder.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "tgz"]),
    default="text",
    show_default=True,
)
@click.option("--cert", type=_FILE, default=None, help="Encryption certificate; omit for base64 only.")
@_output_option
@_json_option
def encrypt_command(
    input_path: str, fmt: str, cert: str | None, output: str | None, json_output: bool
) -> None:
    """Encode a section as base64, or encrypt it when --cert is given."""
    encoder = SectionEncoder()
    certificate = _read(cert)

    def action() -> ChecksummedOutput:
        if fmt == "tgz":
            if certificate is None:
                return encoder.tgz(input_path)
            return encoder.tgz_encrypted(input_path, certificate)
        text = Path(input_path).read_text(encoding="utf-8")
        if fmt == "json":
            if certificate is None:
                return encoder.json(text)
            return encoder.json_encrypted(text, certificate)
        if certificate is None:
            return encoder.text(text)
        return encoder.text_encrypted(text, certificate)

    _emit_checksummed(_run(action), output, json_output)


@main.command("decrypt")
@click.option("--input", "input_path", type=_FILE, required=True, help="Encrypted envelope file.")
@click.option("--key", type=_FILE, required=True, help="Private PEM key file.")
@_output_option
@_json_option
def decrypt_command(input_path: str, key: str, output: str | None, json_output: bool) -> None:
    """Decrypt a hyper-protect-basic envelope."""
    envelope = Path(input_path).read_text(encoding="utf-8")
    private_key = _run(lambda: KeyManager().load_private_key(key))
    result = _run(lambda: SectionEncoder().decrypt_text(envelope, private_key))
    _emit_checksummed(result, output, json_output)


@main.command("validate")
@click.option("--contract", type=_FILE, required=True, help="Plaintext contract YAML.")
@_platform_option
@click.pass_context
def validate_command(ctx: click.Context, contract: str, platform: str | None) -> None:
    """Validate a contract against the platform schema."""
    builder = ContractBuilder(platform or _settings(ctx).platform)
    _run(lambda: builder.validate(Path(contract).read_text(encoding="utf-8")))
    click.echo(f"Contract: VALID ({builder.platform.value})")


@main.command("network-validate")
@click.option("--config", type=_FILE, required=True, help="network-config YAML.")
def network_validate_command(config: str) -> None:
    """Validate an on-prem network-config file."""
    _run(lambda: verify_network_config(Path(config).read_text(encoding="utf-8")))
    click.echo("Network config: VALID")


@main.command("sign")
@click.option("--contract", type=_FILE, required=True, help="Plaintext contract YAML.")
@_cert_options
@click.option("--key", type=_FILE, required=True, help="Private PEM signing key.")
@_platform_option
@_output_option
@_json_option
@click.pass_context
def sign_command(
    ctx: click.Context,
    contract: str,
    cert: str | None,
    cert_version: str | None,
    key: str,
    platform: str | None,
    output: str | None,
    json_output: bool,
) -> None:
    """Encrypt and sign a contract."""
    builder = _builder(ctx, platform, cert_version)
    private_key = _run(lambda: KeyManager().load_private_key(key))
    result = _run(
        lambda: builder.sign_and_encrypt(_read(contract), _read(cert), private_key)
    )
    _emit_checksummed(result, output, json_output)


@main.command("sign-expiry")
@click.option("--contract", type=_FILE, required=True, help="Plaintext contract YAML.")
@_cert_options
@click.option("--key", type=_FILE, required=True, help="Private PEM signing key.")
@click.option("--ca-cert", type=_FILE, required=True, help="CA certificate PEM.")
@click.option("--ca-key", type=_FILE, required=True, help="CA private key PEM.")
@click.option("--expiry-days", type=int, required=True, help="Signing certificate lifetime.")
@click.option("--csr-subject", type=_FILE, default=None, help="JSON file with CSR subject fields.")
@click.option("--csr", type=_FILE, default=None, help="CSR PEM file.")
@_platform_option
@_output_option
@_json_option
@click.pass_context
def sign_expiry_command(
    ctx: click.Context,
    contract: str,
    cert: str | None,
    cert_version: str | None,
    key: str,
    ca_cert: str,
    ca_key: str,
    expiry_days: int,
    csr_subject: str | None,
    csr: str | None,
    platform: str | None,
    output: str | None,
    json_output: bool,
) -> None:
    """Encrypt and sign a contract with a time-limited signing certificate."""
    builder = _builder(ctx, platform, cert_version)
    private_key = _run(lambda: KeyManager().load_private_key(key))
    result = _run(
        lambda: builder.sign_and_encrypt_with_expiry(
            _read(contract),
            _read(cert),
            private_key,
            _read(ca_cert),
            _read(ca_key),
            expiry_days,
            csr_subject=_read(csr_subject),
            csr_pem=_read(csr),
        )
    )
    _emit_checksummed(result, output, json_output)


@main.command("verify")
@click.option("--contract", type=_FILE, required=True, help="Signed contract YAML.")
@click.option(
    "--credential", type=_FILE, required=True, help="Signer public key or signing certificate."
)
def verify_command(contract: str, credential: str) -> None:
    """Verify the envWorkloadSignature of a signed contract."""
    result = _run(
        lambda: ContractVerifier().verify(_read(contract), _read(credential))
    )
    if result.valid:
        click.echo("Signature: VALID")
        if result.certificate_not_after is not None:
            click.echo(f"  Certificate expires: {result.certificate_not_after.isoformat()}")
    else:
        click.echo(f"Signature: INVALID - {result.error}")
        sys.exit(2)


@main.command("cert-status")
@click.option("--cert", type=_FILE, required=True, help="Certificate PEM.")
@click.pass_context
def cert_status_command(ctx: click.Context, cert: str) -> None:
    """Show the validity of a certificate."""
    warning_days = _settings(ctx).expiry_warning_days
    validity = _run(lambda: check_validity(_read(cert), warning_days=warning_days))
    click.echo(f"Status     : {validity.status.value}")
    click.echo(f"Days left  : {validity.days_left}")
    click.echo(f"Expires    : {validity.expiry_date}")
    click.echo(validity.message)


@main.command("cert-report")
@click.option("--certs", type=_FILE, required=True, help="JSON/YAML map of version to certificate.")
@click.option("--format", "fmt", type=click.Choice(["json", "yaml"]), default="json", show_default=True)
@_output_option
@click.pass_context
def cert_report_command(ctx: click.Context, certs: str, fmt: str, output: str | None) -> None:
    """Report the validity of every certificate in a version map."""
    warning_days = _settings(ctx).expiry_warning_days
    report = _run(lambda: validate_certificates(_read(certs), warning_days=warning_days))
    data = {
        version: entry.model_dump(mode="json", by_alias=True)
        for version, entry in report.items()
    }
    _emit(_dump(data, fmt), output)


@main.command("cert-download")
@click.option("--version", "versions", multiple=True, required=True, help="Version to download.")
@click.option("--format", "fmt", type=click.Choice(["json", "yaml"]), default="json", show_default=True)
@click.option("--url-template", default=None, help="URL template with {major}, {minor}, {patch}.")
@_output_option
@click.pass_context
def cert_download_command(
    ctx: click.Context,
    versions: tuple[str, ...],
    fmt: str,
    url_template: str | None,
    output: str | None,
) -> None:
    """Download encryption certificates of the given versions."""
    settings = _settings(ctx)
    certificates = _run(
        lambda: download_encryption_certificates(
            versions,
            url_template or settings.cert_url_template,
            timeout=settings.http_timeout,
        )
    )
    _emit(_dump(certificates, fmt), output)


@main.command("cert-select")
@click.option("--certs", type=_FILE, required=True, help="JSON/YAML map of version to certificate.")
@click.option("--version", "constraint", default=None, help="Version constraint, e.g. '>=1.0.22'.")
@_output_option
def cert_select_command(certs: str, constraint: str | None, output: str | None) -> None:
    """Select the latest encryption certificate matching a constraint."""
    version, pem = _run(lambda: get_encryption_certificate(_read(certs), constraint))
    _emit(json.dumps({"version": version, "cert": pem}, indent=2), output)


@main.command("image-select")
@click.option("--images", type=_FILE, required=True, help="Image listing JSON.")
@click.option("--version", "constraint", default=None, help="Version constraint.")
def image_select_command(images: str, constraint: str | None) -> None:
    """Select the latest Hyper Protect base image."""
    selected = _run(lambda: select_image(_read(images), constraint))
    click.echo(selected.model_dump_json(indent=2))


@main.command("attestation")
@click.option("--input", "input_path", type=_FILE, required=True, help="Encrypted attestation file.")
@click.option("--key", type=_FILE, required=True, help="Private PEM key file.")
@_output_option
def attestation_command(input_path: str, key: str, output: str | None) -> None:
    """Decrypt encrypted attestation records."""
    private_key = _run(lambda: KeyManager().load_private_key(key))
    records = _run(lambda: get_attestation_records(_read(input_path), private_key))
    _emit(records, output)


@main.command("initdata")
@click.option("--contract", type=_FILE, required=True, help="Signed contract YAML.")
@_output_option
@_json_option
def initdata_command(contract: str, output: str | None, json_output: bool) -> None:
    """Package a signed contract as HPCC peer-pod initdata."""
    result = _run(lambda: build_initdata(_read(contract)))
    _emit_checksummed(result, output, json_output)


if __name__ == "__main__":
    main()
