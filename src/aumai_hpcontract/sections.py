"""Standalone section encoders and HPCC initdata packaging."""

from __future__ import annotations

import base64
import gzip
import io
import json
import logging
import tarfile
from pathlib import Path

from aumai_hpcontract.contract import sha256_hex
from aumai_hpcontract.envelope import EnvelopeCodec
from aumai_hpcontract.errors import EmptyParameterError, InvalidInputError
from aumai_hpcontract.models import ChecksummedOutput
from aumai_hpcontract.provider import CryptoProvider

logger = logging.getLogger(__name__)

INITDATA_TEMPLATE = """
algorithm = "sha384"
version = "0.1.0"

[data]
"contract.yaml" = '''{contract}'''
"""


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _require_text(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise EmptyParameterError(name)
    return value


def _ensure_json(text: str) -> None:
    try:
        json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"input is not valid JSON - {exc}") from exc


def _tgz_entries(folder: str | Path) -> bytes:
    root = Path(folder)
    if not root.is_dir():
        raise InvalidInputError(f"folder {str(folder)!r} doesn't exist")
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for entry in sorted(root.iterdir()):
            archive.add(entry, arcname=entry.name)
    return buffer.getvalue()


class SectionEncoder:
    """Encode individual contract sections, optionally encrypted.

    Every method returns a :class:`ChecksummedOutput` carrying the SHA-256
    of the input and of the produced string.
    """

    def __init__(self, provider: CryptoProvider | None = None) -> None:
        self._codec = EnvelopeCodec(provider)

    # -- plain ------------------------------------------------------------

    def text(self, plaintext: str) -> ChecksummedOutput:
        plaintext = _require_text(plaintext, "text")
        encoded = _b64(plaintext.encode("utf-8"))
        return ChecksummedOutput(
            data=encoded, input_sha256=sha256_hex(plaintext), output_sha256=sha256_hex(encoded)
        )

    def json(self, plaintext: str) -> ChecksummedOutput:
        plaintext = _require_text(plaintext, "json")
        _ensure_json(plaintext)
        return self.text(plaintext)

    def tgz(self, folder: str | Path) -> ChecksummedOutput:
        """Base64 of a tar.gz holding every entry of *folder*.

        Entries are stored relative to *folder* itself.  The input checksum
        is taken over the folder path.
        """
        path = _require_text(str(folder) if folder else None, "folder")
        encoded = _b64(_tgz_entries(path))
        logger.debug("archived %s into %d base64 characters", path, len(encoded))
        return ChecksummedOutput(
            data=encoded, input_sha256=sha256_hex(path), output_sha256=sha256_hex(encoded)
        )

    # -- encrypted --------------------------------------------------------

    def text_encrypted(self, plaintext: str, certificate_pem: str) -> ChecksummedOutput:
        plaintext = _require_text(plaintext, "text")
        envelope = self._codec.encrypt(plaintext, certificate_pem)
        return ChecksummedOutput(
            data=envelope, input_sha256=sha256_hex(plaintext), output_sha256=sha256_hex(envelope)
        )

    def json_encrypted(self, plaintext: str, certificate_pem: str) -> ChecksummedOutput:
        plaintext = _require_text(plaintext, "json")
        _ensure_json(plaintext)
        return self.text_encrypted(plaintext, certificate_pem)

    def tgz_encrypted(self, folder: str | Path, certificate_pem: str) -> ChecksummedOutput:
        """Encrypt the base64 tar.gz of *folder* into an envelope."""
        path = _require_text(str(folder) if folder else None, "folder")
        encoded = _b64(_tgz_entries(path))
        envelope = self._codec.encrypt(encoded, certificate_pem)
        return ChecksummedOutput(
            data=envelope, input_sha256=sha256_hex(path), output_sha256=sha256_hex(envelope)
        )

    def decrypt_text(self, envelope: str, private_key_pem: str) -> ChecksummedOutput:
        envelope = _require_text(envelope, "encrypted text")
        plaintext = self._codec.decrypt(envelope, private_key_pem)
        return ChecksummedOutput(
            data=plaintext, input_sha256=sha256_hex(envelope), output_sha256=sha256_hex(plaintext)
        )


def build_initdata(contract: str) -> ChecksummedOutput:
    """Package a signed contract as gzipped, base64-encoded HPCC initdata."""
    contract = _require_text(contract, "contract")
    initdata = INITDATA_TEMPLATE.format(contract=contract)
    encoded = _b64(gzip.compress(initdata.encode("utf-8")))
    return ChecksummedOutput(
        data=encoded, input_sha256=sha256_hex(contract), output_sha256=sha256_hex(encoded)
    )


__all__ = ["INITDATA_TEMPLATE", "SectionEncoder", "build_initdata"]
