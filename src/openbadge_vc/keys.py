"""
Ed25519 signing keys for issuers.

Keys are exchanged in Multikey form: multibase base58btc ('z' prefix) over
the multicodec-tagged raw key bytes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from openbadge_vc.statuslist import utc_timestamp

logger = logging.getLogger(__name__)

ED25519_PUB_HEADER = bytes([0xED, 0x01])  # ed25519-pub multicodec
ED25519_PRIV_HEADER = bytes([0x80, 0x26])  # ed25519-priv multicodec
ED25519_KEY_LENGTH = 32


class SigningKeyError(Exception):
    """Raised when key material is missing or malformed."""


def encode_multibase(header: bytes, key: bytes) -> str:
    """Encode multicodec-tagged key bytes as base58btc multibase."""
    return "z" + base58.b58encode(header + key).decode("ascii")


def decode_multibase(value: str) -> tuple[bytes, bytes]:
    """Split a multibase key into its multicodec header and raw bytes.

    Raises:
        SigningKeyError: If the value is not a base58btc Ed25519 key.
    """
    if not isinstance(value, str) or not value.startswith("z"):
        raise SigningKeyError("Unsupported multibase encoding, expected 'z' prefix")
    try:
        data = base58.b58decode(value[1:])
    except ValueError as e:
        raise SigningKeyError(f"Invalid base58 key: {e}") from e

    header, key = data[:2], data[2:]
    if header not in (ED25519_PUB_HEADER, ED25519_PRIV_HEADER):
        raise SigningKeyError(f"Unsupported multicodec header: {header.hex()}")
    if len(key) != ED25519_KEY_LENGTH:
        raise SigningKeyError(
            f"Ed25519 key must be {ED25519_KEY_LENGTH} bytes, got {len(key)}"
        )
    return header, key


def _raw_public(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def _raw_private(key: Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key(material: Any) -> Ed25519PrivateKey:
    """Load an Ed25519 private key.

    Accepts a key object, a 32-byte seed, a 64-byte seed followed by its
    public key, or a multibase private key string.

    Raises:
        SigningKeyError: If the material is not a usable Ed25519 private key.
    """
    if isinstance(material, Ed25519PrivateKey):
        return material
    if isinstance(material, str):
        header, seed = decode_multibase(material)
        if header != ED25519_PRIV_HEADER:
            raise SigningKeyError("Multibase value is not an Ed25519 private key")
        return Ed25519PrivateKey.from_private_bytes(seed)
    if isinstance(material, (bytes, bytearray)):
        data = bytes(material)
        if len(data) == ED25519_KEY_LENGTH:
            return Ed25519PrivateKey.from_private_bytes(data)
        if len(data) == 2 * ED25519_KEY_LENGTH:
            key = Ed25519PrivateKey.from_private_bytes(data[:ED25519_KEY_LENGTH])
            if _raw_public(key.public_key()) != data[ED25519_KEY_LENGTH:]:
                raise SigningKeyError("Keypair public half does not match its seed")
            return key
        raise SigningKeyError(
            f"Ed25519 private key must be 32 or 64 bytes, got {len(data)}"
        )
    raise SigningKeyError(f"Unsupported private key type: {type(material).__name__}")


def load_public_key(material: Any) -> Ed25519PublicKey:
    """Load an Ed25519 public key from a key object, raw bytes or multibase.

    Raises:
        SigningKeyError: If the material is not a usable Ed25519 public key.
    """
    if isinstance(material, Ed25519PublicKey):
        return material
    if isinstance(material, str):
        header, key = decode_multibase(material)
        if header != ED25519_PUB_HEADER:
            raise SigningKeyError("Multibase value is not an Ed25519 public key")
        material = key
    if isinstance(material, (bytes, bytearray)):
        if len(material) != ED25519_KEY_LENGTH:
            raise SigningKeyError(
                f"Ed25519 public key must be 32 bytes, got {len(material)}"
            )
        try:
            return Ed25519PublicKey.from_public_bytes(bytes(material))
        except ValueError as e:
            raise SigningKeyError(f"Invalid Ed25519 public key: {e}") from e
    raise SigningKeyError(f"Unsupported public key type: {type(material).__name__}")


@dataclass(frozen=True)
class SigningKey:
    """An issuer's Ed25519 keypair. Never modified once created."""

    issuer_id: str
    private_key: bytes
    public_key: bytes
    created: str

    @classmethod
    def from_private_key(
        cls, issuer_id: str, material: Any, created: str | None = None
    ) -> SigningKey:
        key = load_private_key(material)
        return cls(
            issuer_id=issuer_id,
            private_key=_raw_private(key),
            public_key=_raw_public(key.public_key()),
            created=created or utc_timestamp(),
        )

    @classmethod
    def from_multibase(cls, issuer_id: str, private_key_multibase: str) -> SigningKey:
        return cls.from_private_key(issuer_id, private_key_multibase)

    @property
    def public_key_multibase(self) -> str:
        return encode_multibase(ED25519_PUB_HEADER, self.public_key)

    @property
    def private_key_multibase(self) -> str:
        return encode_multibase(ED25519_PRIV_HEADER, self.private_key)

    @property
    def controller(self) -> str:
        return f"did:key:{self.public_key_multibase}"

    @property
    def key_id(self) -> str:
        """Verification method id used in proofs."""
        return f"{self.controller}#{self.public_key_multibase}"

    @property
    def key_info(self) -> dict[str, str]:
        return {
            "id": self.key_id,
            "type": "Multikey",
            "controller": self.controller,
            "publicKeyMultibase": self.public_key_multibase,
        }


def generate_signing_key(
    issuer_id: str, clock: Callable[[], datetime] | None = None
) -> SigningKey:
    """Generate a fresh Ed25519 keypair for ``issuer_id``."""
    return SigningKey.from_private_key(
        issuer_id, Ed25519PrivateKey.generate(), created=utc_timestamp(clock)
    )


class KeyProvider(Protocol):
    """Supplies the current signing key of an issuer."""

    def get_signing_key(self, issuer_id: str) -> SigningKey | None:
        """Return the issuer's key, or None when it has none."""
        ...


class InMemoryKeyStore:
    """Key store keeping every key ever issued, newest last per issuer."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.clock = clock
        self._keys: dict[str, list[SigningKey]] = {}
        self._lock = threading.Lock()

    def add(self, key: SigningKey) -> SigningKey:
        with self._lock:
            self._keys.setdefault(key.issuer_id, []).append(key)
        logger.info("Stored signing key %s for issuer %s", key.key_id, key.issuer_id)
        return key

    def generate(self, issuer_id: str) -> SigningKey:
        """Create a new key for the issuer; earlier keys stay available."""
        return self.add(generate_signing_key(issuer_id, clock=self.clock))

    def get_signing_key(self, issuer_id: str) -> SigningKey | None:
        keys = self._keys.get(issuer_id)
        return keys[-1] if keys else None

    def keys_for(self, issuer_id: str) -> list[SigningKey]:
        return list(self._keys.get(issuer_id, []))

    def get_public_key(self, key_id: str) -> bytes | None:
        """Find the public key of any retained key by verification method id."""
        for keys in self._keys.values():
            for key in keys:
                if key.key_id == key_id:
                    return key.public_key
        return None
