"""Tests for badge issuance and revocation."""

import threading
import uuid
from datetime import datetime, timezone

import pytest

from openbadge_vc.credentials import (
    OB2_CONTEXT_URL,
    Assertion,
    BadgeClass,
    BadgeDocument,
    BadgeVersion,
    build_credential,
    build_achievement,
)
from openbadge_vc.issuer import BadgeIssuer
from openbadge_vc.keys import SigningKeyError
from openbadge_vc.signer import sign_credential
from openbadge_vc.statuslist import (
    STATUS_LIST_2021_CONTEXT,
    MalformedInput,
    index_for_identity,
    is_credential_revoked,
)
from openbadge_vc.storage import InMemoryStatusListStore, StorageContext

HOST = "https://badges.example.com"


@pytest.fixture
def storage():
    """Storage with a key for issuer-1."""
    context = StorageContext()
    context.keys.generate("issuer-1")
    return context


@pytest.fixture
def issuer(storage, fixed_clock):
    return BadgeIssuer(storage, HOST, clock=fixed_clock)


@pytest.fixture
def badge():
    return BadgeClass(
        badge_id="badge-1",
        issuer_id="issuer-1",
        name="Test Achievement",
        description="A test achievement",
        criteria="Complete the tests",
        image_url="https://badges.example.com/images/badge-1.png",
    )


def make_assertion(**overrides):
    values = dict(
        assertion_id=str(uuid.uuid4()),
        badge_id="badge-1",
        issuer_id="issuer-1",
        recipient_type="email",
        recipient_identity="learner@example.com",
        recipient_hashed=False,
        issued_on=datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return Assertion(**values)


class TestDocuments:
    """Tests for Open Badges document builders."""

    def test_ob3_credential_shape(self, badge):
        """OB3 credentials embed the achievement and omit absent evidence."""
        assertion = make_assertion()
        credential = build_credential(HOST, assertion, build_achievement(HOST, badge))

        assert credential["id"] == f"{HOST}/assertions/{assertion.assertion_id}"
        assert credential["type"] == ["VerifiableCredential", "OpenBadgeCredential"]
        assert credential["issuer"] == {"id": f"{HOST}/issuers/issuer-1", "type": "Profile"}
        assert credential["issuanceDate"] == "2025-01-15T10:00:00.000Z"
        assert credential["credentialSubject"]["type"] == "EmailCredentialSubject"
        assert credential["credentialSubject"]["achievement"]["name"] == "Test Achievement"
        assert "evidence" not in credential
        assert "credentialStatus" not in credential
        assert STATUS_LIST_2021_CONTEXT not in credential["@context"]

    def test_ob3_evidence_and_salt(self, badge):
        """Evidence and hashed-recipient salt are included when relevant."""
        assertion = make_assertion(
            recipient_hashed=True, evidence_url="https://example.com/evidence/1"
        )
        credential = build_credential(
            HOST, assertion, build_achievement(HOST, badge), salt="pepper"
        )
        assert credential["evidence"] == [
            {"id": "https://example.com/evidence/1", "type": "Evidence"}
        ]
        assert credential["credentialSubject"]["salt"] == "pepper"

    def test_parse_versions(self, badge):
        """Documents are tagged by their context."""
        ob3 = build_credential(HOST, make_assertion(), build_achievement(HOST, badge))
        assert BadgeDocument.parse(ob3).version is BadgeVersion.OB3
        assert BadgeDocument.parse({"@context": OB2_CONTEXT_URL}).version is BadgeVersion.OB2

    def test_parse_unknown(self):
        """Unknown contexts are rejected."""
        with pytest.raises(ValueError):
            BadgeDocument.parse({"@context": "https://example.com/ctx"})


class TestBadgeIssuer:
    """Tests for the issuance service."""

    def test_issue_ob3(self, issuer, storage, badge):
        """OB3 badges are signed, carry a status entry and are stored."""
        assertion = make_assertion()
        issued = issuer.issue(assertion, badge)

        assert issued.version is BadgeVersion.OB3
        credential = issued.document
        assert credential["proof"]["type"] == "DataIntegrityProof"
        assert credential["proof"]["created"] == "2025-01-15T10:00:00.000Z"
        assert credential["proof"]["verificationMethod"] == (
            storage.keys.get_signing_key("issuer-1").key_id
        )
        assert credential["credentialStatus"]["statusListIndex"] == str(
            index_for_identity(assertion.assertion_id)
        )
        assert credential["credentialStatus"]["statusListCredential"] == (
            f"{HOST}/status/issuer-1/revocation"
        )
        assert STATUS_LIST_2021_CONTEXT in credential["@context"]
        assert storage.credentials.get(assertion.assertion_id) == credential

    def test_issue_ob2(self, issuer, storage, badge):
        """OB2 badges are hosted assertions without a proof."""
        assertion = make_assertion(recipient_hashed=True)
        issued = issuer.issue(assertion, badge, version=BadgeVersion.OB2)

        assert issued.version is BadgeVersion.OB2
        assert issued.is_verifiable is False
        document = issued.document
        assert document["@context"] == OB2_CONTEXT_URL
        assert document["verification"] == {"type": "HostedBadge", "verificationProperty": "id"}
        assert document["badge"]["type"] == "BadgeClass"
        assert document["recipient"]["salt"]
        assert "proof" not in document

    def test_issue_without_key(self, issuer, badge):
        """Issuers without a key cannot issue OB3 badges."""
        with pytest.raises(SigningKeyError):
            issuer.issue(make_assertion(issuer_id="issuer-9"), badge)

    def test_issue_requires_uuid(self, issuer, badge):
        """OB3 assertion ids must be UUIDs for index derivation."""
        with pytest.raises(MalformedInput):
            issuer.issue(make_assertion(assertion_id="assertion-1"), badge)

    def test_verify_issued(self, issuer, badge):
        """Freshly issued badges verify."""
        credential = issuer.issue(make_assertion(), badge).document
        result = issuer.verify(credential)
        assert result.verified is True
        assert result.signature_verification is True

    def test_revoke_and_reinstate(self, issuer, badge):
        """Revocation flips verification and can be undone."""
        assertion = make_assertion()
        credential = issuer.issue(assertion, badge).document

        issuer.revoke(assertion.assertion_id)
        assert issuer.is_revoked(assertion.assertion_id) is True
        result = issuer.verify(credential)
        assert result.verified is False
        assert "revoked" in result.error

        issuer.reinstate(assertion.assertion_id)
        assert issuer.is_revoked(assertion.assertion_id) is False
        assert issuer.verify(credential).verified is True

    def test_verify_after_key_rotation(self, issuer, storage, badge):
        """Credentials signed with a rotated-out key still verify."""
        credential = issuer.issue(make_assertion(), badge).document
        storage.keys.generate("issuer-1")
        assert issuer.verify(credential).verified is True

    def test_verify_tampered(self, issuer, badge):
        """Tampered credentials do not verify."""
        credential = issuer.issue(make_assertion(), badge).document
        credential["credentialSubject"]["achievement"]["name"] = "Tampered Achievement"
        assert issuer.verify(credential).verified is False

    def test_verify_unknown_key(self, issuer, badge):
        """Proofs naming keys outside the store do not verify."""
        credential = issuer.issue(make_assertion(), badge).document
        credential["proof"]["verificationMethod"] = "did:key:z6Mkunknown#z6Mkunknown"
        result = issuer.verify(credential)
        assert result.verified is False
        assert "Unknown verification method" in result.error

    def test_verify_rejects_other_issuers_key(self, issuer, storage, badge):
        """A proof re-signed with another issuer's stored key does not verify."""
        other_key = storage.keys.generate("issuer-2")
        credential = issuer.issue(make_assertion(), badge).document

        forged = {k: v for k, v in credential.items() if k != "proof"}
        forged["credentialSubject"] = dict(
            forged["credentialSubject"], id="mailto:someone-else@example.com"
        )
        forged = sign_credential(forged, other_key.private_key, other_key.key_id)

        result = issuer.verify(forged)
        assert result.verified is False
        assert "Unknown verification method for issuer issuer-1" in result.error

    def test_verify_foreign_issuer(self, issuer, badge):
        """Credentials naming an issuer outside this host do not verify."""
        credential = issuer.issue(make_assertion(), badge).document
        credential["issuer"] = "https://elsewhere.example/issuers/issuer-1"
        assert issuer.verify(credential).verified is False

    def test_verify_unsigned(self, issuer):
        """Unsigned documents fail closed."""
        result = issuer.verify({"id": "urn:uuid:1"})
        assert result.verified is False
        assert result.error == "No proof found in credential"

    def test_revoke_unknown_assertion(self, issuer):
        """Revoking an unknown assertion raises KeyError."""
        with pytest.raises(KeyError):
            issuer.revoke(str(uuid.uuid4()))

    def test_revoke_ob2_assertion(self, issuer, badge):
        """Hosted OB2 assertions have no status entry."""
        assertion = make_assertion()
        issuer.issue(assertion, badge, version=BadgeVersion.OB2)
        with pytest.raises(ValueError):
            issuer.revoke(assertion.assertion_id)

    def test_concurrent_revocations(self, issuer, storage, badge):
        """Concurrent updates to one list are all applied."""
        assertions = []
        seen = set()
        while len(assertions) < 40:
            assertion = make_assertion()
            index = index_for_identity(assertion.assertion_id)
            if index in seen:
                continue
            seen.add(index)
            issuer.issue(assertion, badge)
            assertions.append(assertion)

        threads = [
            threading.Thread(target=issuer.revoke, args=(a.assertion_id,))
            for a in assertions
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        status_list = storage.status_lists.get(issuer.status_list_id("issuer-1"))
        encoded = status_list["credentialSubject"]["encodedList"]
        for index in seen:
            assert is_credential_revoked(encoded, index) is True

    def test_non_positive_list_size(self, storage):
        """Issuers refuse list sizes that cannot hold an index."""
        with pytest.raises(ValueError):
            BadgeIssuer(storage, HOST, status_list_size=0)

    def test_first_use_of_list_from_two_threads(self, fixed_clock):
        """Concurrent first use creates one list and keeps every update."""
        for _ in range(50):
            storage = StorageContext()
            issuer = BadgeIssuer(storage, HOST, clock=fixed_clock)
            list_id = issuer.status_list_id("issuer-1")
            barrier = threading.Barrier(2)

            def revoke_at(index):
                barrier.wait()
                issuer.ensure_status_list("issuer-1")
                storage.status_lists.update_status(list_id, index, True)

            threads = [
                threading.Thread(target=revoke_at, args=(index,)) for index in (3, 5)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            encoded = storage.status_lists.get(list_id)["credentialSubject"]["encodedList"]
            assert is_credential_revoked(encoded, 3) is True
            assert is_credential_revoked(encoded, 5) is True


class TestStatusListStore:
    """Tests for the in-memory status list store."""

    def test_get_or_create_calls_factory_once(self):
        """An existing list is returned without calling the factory."""
        store = InMemoryStatusListStore()
        calls = []

        def factory():
            calls.append(1)
            return {"id": "list-1", "credentialSubject": {"encodedList": "x"}}

        first = store.get_or_create("list-1", factory)
        second = store.get_or_create("list-1", factory)

        assert calls == [1]
        assert first == second == store.get("list-1")

    def test_get_or_create_keeps_updates(self):
        """A list updated after creation is not replaced."""
        store = InMemoryStatusListStore()
        issuer = BadgeIssuer(StorageContext(status_lists=store), HOST)
        list_id = issuer.status_list_id("issuer-1")

        issuer.ensure_status_list("issuer-1")
        store.update_status(list_id, 7, True)
        status_list = issuer.ensure_status_list("issuer-1")

        assert is_credential_revoked(status_list["credentialSubject"]["encodedList"], 7) is True
