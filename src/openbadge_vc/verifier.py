"""
Verifiable Credentials Verifier.

Verifies Ed25519 DataIntegrityProof signatures produced by
``openbadge_vc.signer`` and, optionally, StatusList2021 status.

Verification outcomes are returned as ``VerificationResult`` values; only
malformed key material raises.
"""

from __future__ import annotations

import binascii
import logging
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidSignature

from openbadge_vc.did_resolver import DIDResolver, DIDResolutionError
from openbadge_vc.keys import load_public_key
from openbadge_vc.signer import (
    CRYPTOSUITE,
    PROOF_TYPE,
    base64url_decode,
    signing_payload,
)
from openbadge_vc.statuslist import (
    CredentialStatus,
    StatusCheckResult,
    StatusListChecker,
    StatusListError,
)

logger = logging.getLogger(__name__)

NO_PROOF_ERROR = "No proof found in credential"
ED25519_SIGNATURE_LENGTH = 64


@dataclass
class VerificationResult:
    """Outcome of verifying one credential."""

    verified: bool
    error: str | None = None
    signature_verification: bool | None = None
    credential_id: str | None = None
    issuer: str | None = None
    status_results: list[StatusCheckResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Plain form: ``{verified, error?, results?: {signatureVerification}}``."""
        data: dict[str, Any] = {"verified": self.verified}
        if self.error:
            data["error"] = self.error
        if self.signature_verification is not None:
            data["results"] = {"signatureVerification": self.signature_verification}
        return data


def _extract_issuer(credential: dict[str, Any]) -> str | None:
    issuer = credential.get("issuer")
    if isinstance(issuer, str):
        return issuer
    if isinstance(issuer, dict):
        return issuer.get("id")
    return None


def verify_credential(credential: dict[str, Any], public_key: Any) -> VerificationResult:
    """Verify the proof of ``credential`` against ``public_key``.

    Args:
        credential: The signed credential.
        public_key: Ed25519 key material accepted by ``load_public_key``.

    Returns:
        VerificationResult; ``verified`` is False for unsigned, tampered or
        wrongly keyed credentials.

    Raises:
        SigningKeyError: If ``public_key`` is malformed.
    """
    credential_id = credential.get("id")
    issuer = _extract_issuer(credential)

    def failed(error: str, signature: bool | None = None) -> VerificationResult:
        return VerificationResult(
            verified=False,
            error=error,
            signature_verification=signature,
            credential_id=credential_id,
            issuer=issuer,
        )

    proof = credential.get("proof")
    if not proof:
        return failed(NO_PROOF_ERROR)
    if not isinstance(proof, dict):
        return failed("Proof must be an object")

    key = load_public_key(public_key)

    proof_type = proof.get("type")
    if proof_type != PROOF_TYPE:
        return failed(f"Unsupported proof type: {proof_type}")
    cryptosuite = proof.get("cryptosuite")
    if cryptosuite != CRYPTOSUITE:
        return failed(f"Unsupported cryptosuite: {cryptosuite}")

    proof_value = proof.get("proofValue")
    if not isinstance(proof_value, str) or not proof_value:
        return failed("Missing proofValue in proof")
    try:
        signature = base64url_decode(proof_value)
    except (binascii.Error, ValueError) as e:
        return failed(f"Malformed proofValue: {e}")
    if len(signature) != ED25519_SIGNATURE_LENGTH:
        return failed("Invalid signature", signature=False)

    try:
        key.verify(signature, signing_payload(credential))
    except InvalidSignature:
        logger.debug("Signature mismatch for credential %s", credential_id)
        return failed("Invalid signature", signature=False)

    return VerificationResult(
        verified=True,
        signature_verification=True,
        credential_id=credential_id,
        issuer=issuer,
    )


class VCVerifier:
    """Verifiable Credentials verifier with optional status checking.

    Keys are taken from the caller. A DID resolver is consulted only when one
    is passed in and no key is given.
    """

    def __init__(
        self,
        did_resolver: DIDResolver | None = None,
        statuslist_checker: StatusListChecker | None = None,
        verify_status: bool = False,
    ) -> None:
        """Initialize the verifier.

        Args:
            did_resolver: Resolver to delegate key lookup to.
            statuslist_checker: StatusList checker. Created if not provided.
            verify_status: Whether to check credential status (revocation).
        """
        self.did_resolver = did_resolver
        self.statuslist_checker = statuslist_checker or StatusListChecker()
        self.verify_status = verify_status

    def verify(
        self, credential: dict[str, Any], public_key: Any = None
    ) -> VerificationResult:
        """Verify signature and, if enabled, credential status."""
        proof = credential.get("proof")
        if not proof:
            return VerificationResult(
                verified=False,
                error=NO_PROOF_ERROR,
                credential_id=credential.get("id"),
                issuer=_extract_issuer(credential),
            )

        if public_key is None:
            try:
                public_key = self._resolve_public_key(proof)
            except DIDResolutionError as e:
                return VerificationResult(
                    verified=False,
                    error=f"Key resolution failed: {e}",
                    credential_id=credential.get("id"),
                    issuer=_extract_issuer(credential),
                )

        result = verify_credential(credential, public_key)
        if not result.verified or not self.verify_status:
            return result

        try:
            result.status_results = self.statuslist_checker.check_status(credential)
        except StatusListError as e:
            result.verified = False
            result.error = f"Could not verify status: {e}"
            return result

        for status_result in result.status_results:
            if status_result.status in (CredentialStatus.REVOKED, CredentialStatus.SUSPENDED):
                result.verified = False
                result.error = status_result.message
                break

        return result

    def _resolve_public_key(self, proof: dict[str, Any]) -> bytes:
        """Resolve the proof's verification method through the resolver.

        Raises:
            DIDResolutionError: If no resolver was supplied or resolution fails.
        """
        if self.did_resolver is None:
            raise DIDResolutionError("No public key supplied and no resolver configured")

        verification_method = proof.get("verificationMethod") if isinstance(proof, dict) else None
        if not verification_method:
            raise DIDResolutionError("Missing verificationMethod in proof")

        return self.did_resolver.resolve_public_key(verification_method)
