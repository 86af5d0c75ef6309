"""
Open Badges 2.0 and 3.0 documents.

Builders for badge classes, hosted OB2 assertions and unsigned OB3
credentials, plus ``BadgeDocument`` which fixes a document's version once
when it is constructed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from openbadge_vc.statuslist import STATUS_LIST_2021_CONTEXT, utc_timestamp

OB2_CONTEXT_URL = "https://w3id.org/openbadges/v2"
OB3_CONTEXT_URL = "https://purl.imsglobal.org/spec/ob/v3p0/context-3.0.3.json"
OB3_CREDENTIAL_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    OB3_CONTEXT_URL,
]
OB3_CREDENTIAL_SCHEMA_URL = (
    "https://purl.imsglobal.org/spec/ob/v3p0/schema/json/"
    "ob_v3p0_achievementcredential_schema.json"
)
OB3_BADGE_SCHEMA_URL = (
    "https://purl.imsglobal.org/spec/ob/v3p0/schema/json/"
    "ob_v3p0_achievement_schema.json"
)


class BadgeVersion(Enum):
    OB2 = "2.0"
    OB3 = "3.0"


@dataclass
class BadgeClass:
    badge_id: str
    issuer_id: str
    name: str
    description: str
    criteria: str
    image_url: str


@dataclass
class Assertion:
    assertion_id: str
    badge_id: str
    issuer_id: str
    recipient_type: str
    recipient_identity: str
    recipient_hashed: bool
    issued_on: datetime
    evidence_url: str | None = None


def _recipient(assertion: Assertion, recipient_type: str, salt: str | None) -> dict[str, Any]:
    recipient: dict[str, Any] = {
        "type": recipient_type,
        "identity": assertion.recipient_identity,
        "hashed": assertion.recipient_hashed,
    }
    if assertion.recipient_hashed:
        recipient["salt"] = salt or str(uuid.uuid4())
    return recipient


def build_badge_class(host_url: str, badge: BadgeClass) -> dict[str, Any]:
    """Open Badges 2.0 BadgeClass."""
    return {
        "@context": OB2_CONTEXT_URL,
        "type": "BadgeClass",
        "id": f"{host_url}/badges/{badge.badge_id}",
        "name": badge.name,
        "description": badge.description,
        "image": badge.image_url,
        "criteria": {"narrative": badge.criteria},
        "issuer": f"{host_url}/issuers/{badge.issuer_id}",
    }


def build_achievement(host_url: str, badge: BadgeClass) -> dict[str, Any]:
    """Open Badges 3.0 achievement embedded in credentials."""
    return {
        "id": f"{host_url}/badges/{badge.badge_id}",
        "type": ["Achievement"],
        "name": badge.name,
        "description": badge.description,
        "image": {"id": badge.image_url, "type": "Image"},
        "criteria": {"narrative": badge.criteria},
        "issuer": {"id": f"{host_url}/issuers/{badge.issuer_id}", "type": "Profile"},
        "credentialSchema": {
            "id": OB3_BADGE_SCHEMA_URL,
            "type": "JsonSchemaValidator2018",
        },
    }


def build_assertion(
    host_url: str,
    assertion: Assertion,
    badge_json: dict[str, Any],
    salt: str | None = None,
) -> dict[str, Any]:
    """Open Badges 2.0 hosted assertion."""
    document: dict[str, Any] = {
        "@context": OB2_CONTEXT_URL,
        "type": "Assertion",
        "id": f"{host_url}/assertions/{assertion.assertion_id}",
        "badge": badge_json,
        "recipient": _recipient(assertion, assertion.recipient_type, salt),
        "issuedOn": utc_timestamp(lambda: assertion.issued_on),
        "verification": {"type": "HostedBadge", "verificationProperty": "id"},
    }
    if assertion.evidence_url:
        document["evidence"] = {"id": assertion.evidence_url, "type": "Evidence"}
    return document


def build_credential(
    host_url: str,
    assertion: Assertion,
    achievement: dict[str, Any],
    credential_status: dict[str, Any] | None = None,
    salt: str | None = None,
) -> dict[str, Any]:
    """Unsigned Open Badges 3.0 credential."""
    recipient_type = (
        "EmailCredentialSubject"
        if assertion.recipient_type == "email"
        else "IdentityObject"
    )
    context = list(OB3_CREDENTIAL_CONTEXT)
    if credential_status is not None:
        context.append(STATUS_LIST_2021_CONTEXT)

    credential: dict[str, Any] = {
        "@context": context,
        "id": f"{host_url}/assertions/{assertion.assertion_id}",
        "type": ["VerifiableCredential", "OpenBadgeCredential"],
        "issuer": {"id": f"{host_url}/issuers/{assertion.issuer_id}", "type": "Profile"},
        "issuanceDate": utc_timestamp(lambda: assertion.issued_on),
        "credentialSubject": {
            "id": assertion.recipient_identity,
            **_recipient(assertion, recipient_type, salt),
            "achievement": achievement,
        },
    }
    if assertion.evidence_url:
        credential["evidence"] = [{"id": assertion.evidence_url, "type": "Evidence"}]
    if credential_status is not None:
        credential["credentialStatus"] = credential_status
    credential["credentialSchema"] = {
        "id": OB3_CREDENTIAL_SCHEMA_URL,
        "type": "JsonSchemaValidator2018",
    }
    return credential


@dataclass(frozen=True)
class BadgeDocument:
    """A stored badge document tagged with its Open Badges version."""

    version: BadgeVersion
    document: dict[str, Any]

    @classmethod
    def parse(cls, document: dict[str, Any]) -> BadgeDocument:
        """Tag ``document`` as OB2 or OB3 from its ``@context``.

        Raises:
            ValueError: If the context matches neither version.
        """
        context = document.get("@context")
        contexts = context if isinstance(context, list) else [context]
        if OB2_CONTEXT_URL in contexts:
            return cls(BadgeVersion.OB2, document)
        if any(
            isinstance(c, str) and c.startswith("https://purl.imsglobal.org/spec/ob/v3p0/")
            for c in contexts
        ):
            return cls(BadgeVersion.OB3, document)
        raise ValueError(f"Unrecognised Open Badges context: {context!r}")

    @property
    def is_verifiable(self) -> bool:
        """OB3 documents carry an embedded proof; OB2 ones are hosted."""
        return self.version is BadgeVersion.OB3
