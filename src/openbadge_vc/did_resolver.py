"""
DID Resolver for did:key and did:web methods.

Only used when a caller explicitly delegates key resolution; the verifier
otherwise takes the public key as input.
https://w3c-ccg.github.io/did-method-key/
https://w3c-ccg.github.io/did-method-web/
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from openbadge_vc.keys import (
    ED25519_KEY_LENGTH,
    ED25519_PUB_HEADER,
    SigningKeyError,
    decode_multibase,
)

logger = logging.getLogger(__name__)


class DIDResolutionError(Exception):
    """Raised when DID resolution fails."""


@dataclass
class PublicKeyJWK:
    """Ed25519 public key in OKP JWK format."""

    kty: str
    crv: str
    x: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PublicKeyJWK:
        """Create PublicKeyJWK from a JWK dictionary."""
        return cls(
            kty=data.get("kty", ""),
            crv=data.get("crv", ""),
            x=data.get("x", ""),
        )

    def is_valid_ed25519(self) -> bool:
        """Check if this is an Ed25519 OKP key."""
        return self.kty == "OKP" and self.crv == "Ed25519" and bool(self.x)

    def raw_bytes(self) -> bytes:
        padded = self.x + "=" * (-len(self.x) % 4)
        return base64.urlsafe_b64decode(padded)


@dataclass
class VerificationMethod:
    """DID Document verification method."""

    id: str
    type: str
    controller: str
    public_key_multibase: str | None = None
    public_key_jwk: PublicKeyJWK | None = None

    def public_key_bytes(self) -> bytes:
        """Raw Ed25519 public key of this method.

        Raises:
            DIDResolutionError: If no usable Ed25519 key is present.
        """
        if self.public_key_multibase:
            try:
                header, key = decode_multibase(self.public_key_multibase)
            except SigningKeyError as e:
                raise DIDResolutionError(f"Bad publicKeyMultibase in {self.id}: {e}") from e
            if header != ED25519_PUB_HEADER:
                raise DIDResolutionError(f"Not an Ed25519 public key: {self.id}")
            return key

        if self.public_key_jwk is not None:
            if not self.public_key_jwk.is_valid_ed25519():
                raise DIDResolutionError(
                    f"Public key is not a valid Ed25519 OKP key: {self.public_key_jwk}"
                )
            try:
                key = self.public_key_jwk.raw_bytes()
            except (binascii.Error, ValueError) as e:
                raise DIDResolutionError(f"Bad publicKeyJwk in {self.id}: {e}") from e
            if len(key) != ED25519_KEY_LENGTH:
                raise DIDResolutionError(f"Ed25519 JWK has wrong length in {self.id}")
            return key

        raise DIDResolutionError(f"No public key material in verification method {self.id}")


@dataclass
class DIDDocument:
    """W3C DID Document."""

    id: str
    verification_methods: list[VerificationMethod]
    authentication: list[str]
    assertion_method: list[str]

    def get_verification_method(self, method_id: str) -> VerificationMethod | None:
        """Get a verification method by ID."""
        for vm in self.verification_methods:
            if vm.id == method_id:
                return vm
        return None


class DIDResolver:
    """Resolver for did:key and did:web."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        """Initialize the DID resolver.

        Args:
            timeout: HTTP request timeout in seconds (did:web only).
            verify_ssl: Whether to verify SSL certificates.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._cache: dict[str, DIDDocument] = {}

    def _did_to_url(self, did: str) -> str:
        """Convert a did:web identifier to its resolution URL.

        did:web:example.com -> https://example.com/.well-known/did.json
        did:web:example.com:path:to:doc -> https://example.com/path/to/doc/did.json
        did:web:example.com%3A8080 -> https://example.com:8080/.well-known/did.json

        Raises:
            DIDResolutionError: If the DID format is invalid.
        """
        if not did.startswith("did:web:"):
            raise DIDResolutionError(f"Invalid did:web identifier: {did}")

        domain_path = did[8:].split("#")[0]
        parts = domain_path.split(":")

        # Port is percent-encoded in the domain segment
        domain = parts[0].replace("%3A", ":")

        if len(parts) > 1:
            path = "/" + "/".join(quote(p, safe="") for p in parts[1:]) + "/did.json"
        else:
            path = "/.well-known/did.json"

        return f"https://{domain}{path}"

    def resolve(self, did: str, use_cache: bool = True) -> DIDDocument:
        """Resolve a DID to its DID Document.

        Raises:
            DIDResolutionError: If resolution fails or the method is unsupported.
        """
        base_did = did.split("#")[0]

        if use_cache and base_did in self._cache:
            return self._cache[base_did]

        if base_did.startswith("did:key:"):
            doc = self._resolve_did_key(base_did)
        elif base_did.startswith("did:web:"):
            doc = self._parse_did_document(self._fetch_did_web(base_did), base_did)
        else:
            raise DIDResolutionError(f"Unsupported DID method: {did}")

        if use_cache:
            self._cache[base_did] = doc

        return doc

    def resolve_public_key(self, verification_method: str) -> bytes:
        """Resolve a verification method id to a raw Ed25519 public key.

        Raises:
            DIDResolutionError: If resolution fails.
        """
        did_document = self.resolve(verification_method)
        vm = did_document.get_verification_method(verification_method)
        if vm is None and "#" not in verification_method and did_document.assertion_method:
            vm = did_document.get_verification_method(did_document.assertion_method[0])
        if vm is None:
            raise DIDResolutionError(
                f"Verification method {verification_method} not found in DID Document"
            )
        return vm.public_key_bytes()

    def _resolve_did_key(self, did: str) -> DIDDocument:
        multibase = did[len("did:key:"):]
        try:
            header, _ = decode_multibase(multibase)
        except SigningKeyError as e:
            raise DIDResolutionError(f"Invalid did:key identifier {did}: {e}") from e
        if header != ED25519_PUB_HEADER:
            raise DIDResolutionError(f"did:key does not encode an Ed25519 public key: {did}")

        method_id = f"{did}#{multibase}"
        return DIDDocument(
            id=did,
            verification_methods=[VerificationMethod(
                id=method_id,
                type="Multikey",
                controller=did,
                public_key_multibase=multibase,
            )],
            authentication=[method_id],
            assertion_method=[method_id],
        )

    def _fetch_did_web(self, did: str) -> dict[str, Any]:
        url = self._did_to_url(did)
        logger.debug("Resolving %s via %s", did, url)
        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = client.get(
                    url,
                    headers={"Accept": "application/did+ld+json, application/json"},
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            raise DIDResolutionError(
                f"HTTP error resolving {did}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise DIDResolutionError(f"Network error resolving {did}: {e}") from e
        except ValueError as e:
            raise DIDResolutionError(f"Invalid JSON in DID Document for {did}") from e

    def _parse_did_document(self, data: dict[str, Any], did: str) -> DIDDocument:
        """Parse a DID Document from JSON.

        Raises:
            DIDResolutionError: If the document is invalid.
        """
        doc_id = data.get("id", "")
        if doc_id != did:
            raise DIDResolutionError(
                f"DID Document id mismatch: expected {did}, got {doc_id}"
            )

        verification_methods: list[VerificationMethod] = []
        for vm_data in data.get("verificationMethod", []):
            public_key_jwk = None
            if "publicKeyJwk" in vm_data:
                public_key_jwk = PublicKeyJWK.from_dict(vm_data["publicKeyJwk"])

            verification_methods.append(VerificationMethod(
                id=self._absolute_id(vm_data.get("id", ""), doc_id),
                type=vm_data.get("type", ""),
                controller=vm_data.get("controller", ""),
                public_key_multibase=vm_data.get("publicKeyMultibase"),
                public_key_jwk=public_key_jwk,
            ))

        return DIDDocument(
            id=doc_id,
            verification_methods=verification_methods,
            authentication=self._parse_verification_relationship(
                data.get("authentication", []), doc_id
            ),
            assertion_method=self._parse_verification_relationship(
                data.get("assertionMethod", []), doc_id
            ),
        )

    @staticmethod
    def _absolute_id(method_id: str, did: str) -> str:
        """Expand a relative "#fragment" id against the document DID."""
        return f"{did}{method_id}" if method_id.startswith("#") else method_id

    def _parse_verification_relationship(
        self, items: list[Any], did: str
    ) -> list[str]:
        """Extract verification method ids from strings or embedded objects."""
        result: list[str] = []
        for item in items:
            if isinstance(item, str):
                result.append(self._absolute_id(item, did))
            elif isinstance(item, dict) and "id" in item:
                result.append(self._absolute_id(item["id"], did))
        return result

    def clear_cache(self) -> None:
        """Clear the resolution cache."""
        self._cache.clear()
