"""Ed25519 signing backend for data items."""

from __future__ import annotations

import base64
import os
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from aumai_bundlr.models import Keypair

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def b64url_encode(data: bytes) -> str:
    """Unpadded base64url, as used for item ids, keys and addresses."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def verify_ed25519(public_key: bytes, data: bytes, signature: bytes) -> bool:
    """Return True if *signature* over *data* matches the raw *public_key*."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, data)
    except (InvalidSignature, ValueError):
        return False
    return True


def _raw_private_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _raw_public_bytes(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


# ---------------------------------------------------------------------------
# Ed25519Signer
# ---------------------------------------------------------------------------


class Ed25519Signer:
    """Sign and verify with a single Ed25519 private key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = _raw_public_bytes(private_key.public_key())

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.from_private_bytes(b64url_decode(keypair.private_key)))

    @classmethod
    def from_pem(cls, pem_bytes: bytes, password: bytes | None = None) -> Ed25519Signer:
        """Load a PKCS8 PEM private key.

        Raises:
            ValueError: if the key is not an Ed25519 key.
        """
        key = serialization.load_pem_private_key(pem_bytes, password=password)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(
                f"Unsupported key type: {type(key).__name__}. "
                "Only Ed25519 keys can sign data items."
            )
        return cls(key)

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def verify(self, public_key: bytes, data: bytes, signature: bytes) -> bool:
        return verify_ed25519(public_key, data, signature)

    def to_keypair(self) -> Keypair:
        return Keypair(
            private_key=b64url_encode(_raw_private_bytes(self._private_key)),
            public_key=b64url_encode(self._public_key),
        )


# ---------------------------------------------------------------------------
# KeyManager
# ---------------------------------------------------------------------------


class KeyManager:
    """Generate, persist, and load Ed25519 signing keys."""

    def generate_keypair(self) -> Keypair:
        """Generate a fresh raw keypair, suitable for single-use bundle signing."""
        return Ed25519Signer(Ed25519PrivateKey.generate()).to_keypair()

    def generate_pem(self, passphrase: bytes | None = None) -> tuple[bytes, bytes]:
        """Generate a fresh key pair as ``(private_pem, public_pem)``.

        Args:
            passphrase: Optional passphrase to encrypt the private key PEM.
        """
        encryption: serialization.KeySerializationEncryption = (
            serialization.BestAvailableEncryption(passphrase)
            if passphrase is not None
            else serialization.NoEncryption()
        )
        private_key = Ed25519PrivateKey.generate()
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return private_pem, public_pem

    def save_keypair(self, private_key: bytes, public_key: bytes, path: str) -> None:
        """Write the PEM pair to *path*/private.pem and *path*/public.pem.

        The private key file is written with mode 0o600 on POSIX systems.
        """
        out_dir = Path(path)
        out_dir.mkdir(parents=True, exist_ok=True)

        private_file = out_dir / "private.pem"
        private_file.write_bytes(private_key)
        (out_dir / "public.pem").write_bytes(public_key)

        try:
            os.chmod(private_file, 0o600)
        except NotImplementedError:
            pass  # Windows

    def load_signer(self, path: str, password: bytes | None = None) -> Ed25519Signer:
        """Read a PEM private key from *path* and wrap it as a signer."""
        return Ed25519Signer.from_pem(Path(path).read_bytes(), password=password)


# ---------------------------------------------------------------------------
# LocalCurrency
# ---------------------------------------------------------------------------


class LocalCurrency:
    """A paying account identified by network name, holding its own signer."""

    def __init__(self, name: str, signer: Ed25519Signer) -> None:
        self._name = name
        self._signer = signer

    @property
    def name(self) -> str:
        return self._name

    def get_signer(self) -> Ed25519Signer:
        return self._signer


__all__ = [
    "Ed25519Signer",
    "KeyManager",
    "LocalCurrency",
    "b64url_decode",
    "b64url_encode",
    "verify_ed25519",
]
