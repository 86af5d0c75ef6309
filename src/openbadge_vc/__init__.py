"""
openbadge-vc - Open Badges credential signing and revocation library.

Supports:
- W3C StatusList2021 revocation/suspension lists (text bitstring encoding)
- Ed25519 Data Integrity Proofs (DataIntegrityProof, eddsa-rdfc-2022)
- Multikey / did:key issuer keys
- Open Badges 2.0 hosted assertions and 3.0 credentials
"""

__version__ = "0.1.0"

from openbadge_vc.bitstring import BitString, IndexOutOfRange
from openbadge_vc.keys import (
    InMemoryKeyStore,
    KeyProvider,
    SigningKey,
    SigningKeyError,
    generate_signing_key,
)
from openbadge_vc.statuslist import (
    CredentialStatus,
    MalformedInput,
    StatusListChecker,
    StatusListError,
    create_encoded_bitstring,
    create_status_list_credential,
    index_for_identity,
    is_credential_revoked,
    update_credential_status,
)
from openbadge_vc.signer import CredentialSigner, sign_credential
from openbadge_vc.verifier import VCVerifier, VerificationResult, verify_credential
from openbadge_vc.did_resolver import DIDResolver, DIDResolutionError

__all__ = [
    "BitString",
    "IndexOutOfRange",
    "InMemoryKeyStore",
    "KeyProvider",
    "SigningKey",
    "SigningKeyError",
    "generate_signing_key",
    "CredentialStatus",
    "MalformedInput",
    "StatusListChecker",
    "StatusListError",
    "create_encoded_bitstring",
    "create_status_list_credential",
    "index_for_identity",
    "is_credential_revoked",
    "update_credential_status",
    "CredentialSigner",
    "sign_credential",
    "VCVerifier",
    "VerificationResult",
    "verify_credential",
    "DIDResolver",
    "DIDResolutionError",
]
