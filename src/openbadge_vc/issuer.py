"""
Badge issuance, revocation and verification against local storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from openbadge_vc.credentials import (
    Assertion,
    BadgeClass,
    BadgeDocument,
    BadgeVersion,
    build_achievement,
    build_assertion,
    build_badge_class,
    build_credential,
)
from openbadge_vc.signer import CredentialSigner
from openbadge_vc.statuslist import (
    DEFAULT_STATUS_LIST_SIZE,
    StatusListChecker,
    create_status_list_credential,
    index_for_identity,
    is_credential_revoked,
    status_list_entry,
)
from openbadge_vc.storage import StorageContext
from openbadge_vc.verifier import VCVerifier, VerificationResult

logger = logging.getLogger(__name__)


class BadgeIssuer:
    """Issues badges for the issuers whose keys live in ``storage.keys``."""

    def __init__(
        self,
        storage: StorageContext,
        host_url: str,
        status_list_size: int = DEFAULT_STATUS_LIST_SIZE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if status_list_size <= 0:
            raise ValueError(f"Status list size must be positive: {status_list_size}")
        self.storage = storage
        self.host_url = host_url.rstrip("/")
        self.status_list_size = status_list_size
        self.clock = clock
        self.signer = CredentialSigner(storage.keys, clock=clock)

    def status_list_id(self, issuer_id: str, purpose: str = "revocation") -> str:
        return f"{self.host_url}/status/{issuer_id}/{purpose}"

    def ensure_status_list(self, issuer_id: str, purpose: str = "revocation") -> dict[str, Any]:
        """Return the issuer's status list, creating it on first use."""
        list_id = self.status_list_id(issuer_id, purpose)

        def create() -> dict[str, Any]:
            logger.info("Created %s status list %s", purpose, list_id)
            return create_status_list_credential(
                issuer=f"{self.host_url}/issuers/{issuer_id}",
                id=list_id,
                purpose=purpose,
                size=self.status_list_size,
                clock=self.clock,
            )

        return self.storage.status_lists.get_or_create(list_id, create)

    def issue(
        self,
        assertion: Assertion,
        badge: BadgeClass,
        version: BadgeVersion = BadgeVersion.OB3,
    ) -> BadgeDocument:
        """Build, sign (OB3 only) and store an assertion.

        Raises:
            MalformedInput: If an OB3 assertion id is not a UUID.
            SigningKeyError: If the issuer has no signing key.
        """
        if version is BadgeVersion.OB2:
            document = build_assertion(
                self.host_url, assertion, build_badge_class(self.host_url, badge)
            )
        else:
            document = self._issue_credential(assertion, badge)

        self.storage.credentials.save(assertion.assertion_id, document)
        logger.info(
            "Issued OB%s assertion %s for issuer %s",
            version.value,
            assertion.assertion_id,
            assertion.issuer_id,
        )
        return BadgeDocument(version, document)

    def _issue_credential(self, assertion: Assertion, badge: BadgeClass) -> dict[str, Any]:
        index = index_for_identity(assertion.assertion_id, self.status_list_size)
        status_list = self.ensure_status_list(assertion.issuer_id)
        credential = build_credential(
            self.host_url,
            assertion,
            build_achievement(self.host_url, badge),
            credential_status=status_list_entry(status_list["id"], index),
        )
        return self.signer.sign_for_issuer(credential, assertion.issuer_id)

    def _status_entry(self, assertion_id: str) -> dict[str, Any]:
        document = self.storage.credentials.get(assertion_id)
        if document is None:
            raise KeyError(f"Assertion not found: {assertion_id}")
        entry = document.get("credentialStatus")
        if not entry:
            raise ValueError(f"Assertion {assertion_id} has no credentialStatus")
        return entry

    def _set_status(self, assertion_id: str, revoked: bool) -> dict[str, Any]:
        entry = self._status_entry(assertion_id)
        return self.storage.status_lists.update_status(
            entry["statusListCredential"], int(entry["statusListIndex"]), revoked
        )

    def revoke(self, assertion_id: str) -> dict[str, Any]:
        """Set the assertion's status bit.

        Assertions whose ids share the same index are affected as well.
        """
        return self._set_status(assertion_id, True)

    def reinstate(self, assertion_id: str) -> dict[str, Any]:
        return self._set_status(assertion_id, False)

    def is_revoked(self, assertion_id: str) -> bool:
        entry = self._status_entry(assertion_id)
        status_list = self.storage.status_lists.get(entry["statusListCredential"])
        if status_list is None:
            raise KeyError(f"Status list not found: {entry['statusListCredential']}")
        return is_credential_revoked(
            status_list["credentialSubject"]["encodedList"],
            int(entry["statusListIndex"]),
        )

    def verify(self, credential: dict[str, Any]) -> VerificationResult:
        """Verify with the stored key named by the proof, then check status."""
        proof = credential.get("proof")
        verifier = VCVerifier(
            statuslist_checker=StatusListChecker(fetch=self.storage.status_lists.get),
            verify_status=True,
        )
        if not isinstance(proof, dict):
            return verifier.verify(credential)

        verification_method = proof.get("verificationMethod", "")
        issuer_id = self._issuer_id(credential)
        public_key = None
        if issuer_id is not None:
            for key in self.storage.keys.keys_for(issuer_id):
                if key.key_id == verification_method:
                    public_key = key.public_key
                    break
        if public_key is None:
            return VerificationResult(
                verified=False,
                error=(
                    f"Unknown verification method for issuer {issuer_id}: "
                    f"{verification_method}"
                ),
                credential_id=credential.get("id"),
            )
        return verifier.verify(credential, public_key)

    def _issuer_id(self, credential: dict[str, Any]) -> str | None:
        """Issuer id from a credential issued by this host, else None."""
        issuer = credential.get("issuer")
        if isinstance(issuer, dict):
            issuer = issuer.get("id")
        prefix = f"{self.host_url}/issuers/"
        if not isinstance(issuer, str) or not issuer.startswith(prefix):
            return None
        return issuer[len(prefix):] or None
