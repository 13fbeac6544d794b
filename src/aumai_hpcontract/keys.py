"""RSA key pair generation and persistence for contract signing."""

from __future__ import annotations

import os
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from aumai_hpcontract.errors import InvalidInputError

DEFAULT_KEY_SIZE = 4096


class KeyManager:
    """Generate, persist, and load RSA key pairs."""

    def generate_keypair(self, key_size: int = DEFAULT_KEY_SIZE) -> tuple[bytes, bytes]:
        """Generate a fresh RSA key pair.

        Args:
            key_size: Modulus size in bits.

        Returns:
            A tuple of ``(private_key_bytes, public_key_bytes)`` in PEM format.
            The private key is unencrypted PKCS#8, which is what contract
            signing and decryption consume.
        """
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return private_pem, public_pem

    def save_keypair(
        self, private_key: bytes, public_key: bytes, path: str
    ) -> None:
        """Write the PEM-encoded key pair to *path*/private.pem and *path*/public.pem.

        The private key file is written with mode 0o600 on POSIX systems.
        """
        out_dir = Path(path)
        out_dir.mkdir(parents=True, exist_ok=True)

        private_file = out_dir / "private.pem"
        public_file = out_dir / "public.pem"

        private_file.write_bytes(private_key)
        public_file.write_bytes(public_key)

        try:
            os.chmod(private_file, 0o600)
        except NotImplementedError:
            pass  # Windows

    def load_private_key(self, path: str) -> str:
        """Read a PEM private key from *path* and return it as text.

        The key is parsed eagerly so a corrupt, unsupported or
        passphrase-protected file is reported here rather than in the
        middle of signing.

        Raises:
            InvalidInputError: if the file does not hold an unencrypted
                PEM private key.
        """
        pem_bytes = Path(path).read_bytes()
        try:
            serialization.load_pem_private_key(pem_bytes, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise InvalidInputError(f"failed to load private key - {exc}") from exc
        return pem_bytes.decode("ascii")

    def load_public_key(self, path: str) -> str:
        return Path(path).read_text(encoding="ascii")


__all__ = ["DEFAULT_KEY_SIZE", "KeyManager"]
