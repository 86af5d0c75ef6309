"""Shared fixtures."""

import uuid
from datetime import datetime, timezone

import pytest

from openbadge_vc.credentials import OB3_CREDENTIAL_CONTEXT, OB3_CREDENTIAL_SCHEMA_URL
from openbadge_vc.keys import generate_signing_key


FIXED_NOW = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2025-01-15T10:00:00Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def signing_key():
    """A fresh Ed25519 issuer key."""
    return generate_signing_key("issuer-1")


@pytest.fixture
def other_signing_key():
    """A second, unrelated Ed25519 key."""
    return generate_signing_key("issuer-2")


@pytest.fixture
def sample_credential(signing_key):
    """Unsigned Open Badges 3.0 credential issued by the test key."""
    return {
        "@context": list(OB3_CREDENTIAL_CONTEXT),
        "id": f"urn:uuid:{uuid.uuid4()}",
        "type": ["VerifiableCredential", "OpenBadgeCredential"],
        "issuer": signing_key.controller,
        "issuanceDate": "2025-01-15T10:00:00.000Z",
        "credentialSubject": {
            "id": "did:example:recipient123",
            "type": ["AchievementSubject"],
            "achievement": {
                "id": "https://example.com/achievements/123",
                "type": ["Achievement"],
                "name": "Test Achievement",
                "description": "A test achievement for unit testing",
            },
        },
        "credentialSchema": {
            "id": OB3_CREDENTIAL_SCHEMA_URL,
            "type": "JsonSchemaValidator2018",
        },
    }
