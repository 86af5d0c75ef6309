"""
Credential signing with Ed25519 Data Integrity proofs.

The signing payload is the credential without its proof, serialized as
compact JSON in the key order already present in the object. No RDF
canonicalization is performed.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from openbadge_vc.keys import KeyProvider, SigningKeyError, load_private_key
from openbadge_vc.statuslist import utc_timestamp

logger = logging.getLogger(__name__)

PROOF_TYPE = "DataIntegrityProof"
CRYPTOSUITE = "eddsa-rdfc-2022"


def signing_payload(credential: dict[str, Any]) -> bytes:
    """Bytes that are signed for ``credential``; any proof is excluded."""
    unsigned_credential = {k: v for k, v in credential.items() if k != "proof"}
    return json.dumps(
        unsigned_credential, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def base64url_encode(data: bytes) -> str:
    """Encode base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def base64url_decode(data: str) -> bytes:
    """Decode base64url, padding optional."""
    padding = 4 - (len(data) % 4)
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data)


def sign_credential(
    credential: dict[str, Any],
    private_key: Any,
    verification_method: str,
    proof_purpose: str = "assertionMethod",
    created: str | None = None,
) -> dict[str, Any]:
    """Return a copy of ``credential`` carrying a DataIntegrityProof.

    Args:
        credential: The unsigned credential. It is not modified.
        private_key: Ed25519 key material accepted by ``load_private_key``.
        verification_method: Key id placed in the proof.
        proof_purpose: Proof purpose, normally assertionMethod.
        created: Proof timestamp; defaults to now.

    Raises:
        SigningKeyError: If the private key material is malformed.
    """
    key = load_private_key(private_key)

    unsigned = dict(credential)
    if unsigned.pop("proof", None) is not None:
        logger.warning(
            "Dropping existing proof before signing credential %s",
            credential.get("id"),
        )

    signature = key.sign(signing_payload(unsigned))

    signed = dict(unsigned)
    signed["proof"] = {
        "type": PROOF_TYPE,
        "cryptosuite": CRYPTOSUITE,
        "created": created or utc_timestamp(),
        "verificationMethod": verification_method,
        "proofPurpose": proof_purpose,
        "proofValue": base64url_encode(signature),
    }
    logger.debug("Signed credential %s with %s", credential.get("id"), verification_method)
    return signed


class CredentialSigner:
    """Signs credentials with keys looked up from a key provider."""

    def __init__(
        self,
        key_provider: KeyProvider,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.key_provider = key_provider
        self.clock = clock

    def sign_for_issuer(
        self,
        credential: dict[str, Any],
        issuer_id: str,
        proof_purpose: str = "assertionMethod",
    ) -> dict[str, Any]:
        """Sign with the issuer's current key.

        Raises:
            SigningKeyError: If the issuer has no signing key.
        """
        signing_key = self.key_provider.get_signing_key(issuer_id)
        if signing_key is None:
            raise SigningKeyError(f"Issuer signing key not found: {issuer_id}")

        return sign_credential(
            credential,
            signing_key.private_key,
            verification_method=signing_key.key_id,
            proof_purpose=proof_purpose,
            created=utc_timestamp(self.clock),
        )
