"""
StatusList2021 module.

Builds, updates and queries W3C StatusList2021 credentials, and checks the
status of presented credentials against them.
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/
"""

from __future__ import annotations

import logging
import uuid as uuid_lib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from openbadge_vc import bitstring
from openbadge_vc.bitstring import IndexOutOfRange

logger = logging.getLogger(__name__)

DEFAULT_STATUS_LIST_SIZE = bitstring.DEFAULT_SIZE

CREDENTIALS_V1_CONTEXT = "https://www.w3.org/2018/credentials/v1"
STATUS_LIST_2021_CONTEXT = "https://w3id.org/vc/status-list/2021/v1"
STATUS_LIST_CONTEXTS = [CREDENTIALS_V1_CONTEXT, STATUS_LIST_2021_CONTEXT]

STATUS_PURPOSES = ("revocation", "suspension")


class CredentialStatus(Enum):
    """Credential status values."""

    VALID = "valid"
    REVOKED = "revoked"
    SUSPENDED = "suspended"
    UNKNOWN = "unknown"


class StatusListError(Exception):
    """Raised when StatusList operations fail."""


class MalformedInput(ValueError):
    """Raised when an identity cannot be mapped to a status list index."""


def utc_timestamp(clock: Callable[[], datetime] | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = clock() if clock else datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_encoded_bitstring(size: int = DEFAULT_STATUS_LIST_SIZE) -> str:
    """Create an all-clear encoded list able to track ``size`` credentials."""
    return bitstring.encode(bitstring.create(size))


def update_credential_status(encoded_list: str, index: int, revoked: bool) -> str:
    """Return ``encoded_list`` with the bit at ``index`` set or cleared.

    The whole list is decoded and re-encoded; callers updating a shared list
    must serialize writes themselves.

    Raises:
        IndexOutOfRange: If ``index`` is outside the decoded list.
    """
    bits = bitstring.decode(encoded_list)
    if revoked:
        bits.set(index)
    else:
        bits.clear(index)
    return bitstring.encode(bits)


def is_credential_revoked(encoded_list: str, index: int) -> bool:
    """Check whether the bit at ``index`` is set.

    Indices past the end of the decoded list read as not revoked.
    """
    if index < 0:
        raise IndexOutOfRange(f"Status list index must not be negative: {index}")
    bits = bitstring.decode(encoded_list)
    if index >= len(bits):
        logger.warning(
            "Status list index %d beyond list length %d, treating as unset",
            index,
            len(bits),
        )
        return False
    return bits.get(index)


def index_for_identity(identity: str, size: int = DEFAULT_STATUS_LIST_SIZE) -> int:
    """Map a UUID to a status list index.

    Uses the first 32 bits of the UUID modulo ``size``. Distinct UUIDs can
    land on the same index.

    Raises:
        MalformedInput: If ``identity`` is not a UUID.
        ValueError: If ``size`` is not positive.
    """
    if size <= 0:
        raise ValueError(f"Status list size must be positive: {size}")
    try:
        parsed = uuid_lib.UUID(identity)
    except (ValueError, AttributeError, TypeError) as e:
        raise MalformedInput(f"Not a UUID: {identity!r}") from e
    return int(parsed.hex[:8], 16) % size


def create_status_list_credential(
    issuer: str | dict[str, Any],
    id: str,
    purpose: str = "revocation",
    size: int = DEFAULT_STATUS_LIST_SIZE,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Build an unsigned StatusList2021Credential with every bit clear."""
    if purpose not in STATUS_PURPOSES:
        raise ValueError(f"Unsupported status purpose: {purpose}")

    return {
        "@context": list(STATUS_LIST_CONTEXTS),
        "id": id,
        "type": ["VerifiableCredential", "StatusList2021Credential"],
        "issuer": issuer,
        "issuanceDate": utc_timestamp(clock),
        "credentialSubject": {
            "id": f"{id}#list",
            "type": "StatusList2021",
            "statusPurpose": purpose,
            "encodedList": create_encoded_bitstring(size),
        },
    }


def set_credential_status(
    status_list_credential: dict[str, Any], index: int, revoked: bool
) -> dict[str, Any]:
    """Flip one entry of a status list credential in place and return it."""
    subject = status_list_credential["credentialSubject"]
    subject["encodedList"] = update_credential_status(
        subject["encodedList"], index, revoked
    )
    return status_list_credential


def status_list_entry(
    status_list_credential: str,
    index: int,
    purpose: str = "revocation",
) -> dict[str, str]:
    """Build the credentialStatus entry pointing at ``index`` of a list."""
    return {
        "id": f"{status_list_credential}#{index}",
        "type": "StatusList2021Entry",
        "statusPurpose": purpose,
        "statusListIndex": str(index),
        "statusListCredential": status_list_credential,
    }


@dataclass
class StatusListEntry:
    """Parsed credentialStatus from a VC."""

    status_list_credential: str
    status_list_index: int
    status_purpose: str
    id: str | None = None
    type: str = "StatusList2021Entry"


@dataclass
class StatusCheckResult:
    """Result of a status check."""

    status: CredentialStatus
    purpose: str
    index: int
    message: str


class StatusListChecker:
    """Checks credential status against StatusList2021 credentials."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        fetch: Callable[[str], dict[str, Any] | None] | None = None,
    ) -> None:
        """Initialize the StatusList checker.

        Args:
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            fetch: Optional lookup returning a status list credential by id.
                When given, no HTTP requests are made.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.fetch = fetch
        self._cache: dict[str, str] = {}  # encodedList by status list URL

    def parse_credential_status(
        self, credential: dict[str, Any]
    ) -> list[StatusListEntry]:
        """Parse credentialStatus from a VC.

        Handles both a single credentialStatus object and an array
        of statuses (e.g. one for revocation, one for suspension).

        Raises:
            StatusListError: If a StatusList2021Entry is malformed.
        """
        status_data = credential.get("credentialStatus")
        if not status_data:
            return []

        if not isinstance(status_data, list):
            status_data = [status_data]

        entries: list[StatusListEntry] = []
        for item in status_data:
            if item.get("type") != "StatusList2021Entry":
                continue
            try:
                entries.append(StatusListEntry(
                    id=item.get("id"),
                    type=item.get("type", "StatusList2021Entry"),
                    status_list_credential=item["statusListCredential"],
                    status_list_index=int(item["statusListIndex"]),
                    status_purpose=item["statusPurpose"],
                ))
            except (KeyError, ValueError, TypeError) as e:
                raise StatusListError(f"Invalid credentialStatus: {e}") from e

        return entries

    def check_status(
        self,
        credential: dict[str, Any],
        use_cache: bool = True,
    ) -> list[StatusCheckResult]:
        """Check the revocation/suspension status of a credential.

        Returns:
            One StatusCheckResult per StatusList2021Entry (empty if none).

        Raises:
            StatusListError: If a status list cannot be obtained or read.
        """
        results: list[StatusCheckResult] = []
        for entry in self.parse_credential_status(credential):
            encoded_list = self._fetch_encoded_list(
                entry.status_list_credential,
                use_cache=use_cache,
            )
            try:
                is_set = is_credential_revoked(encoded_list, entry.status_list_index)
            except IndexOutOfRange as e:
                raise StatusListError(str(e)) from e

            if is_set:
                if entry.status_purpose == "revocation":
                    status = CredentialStatus.REVOKED
                    message = f"Credential is revoked (index {entry.status_list_index})"
                elif entry.status_purpose == "suspension":
                    status = CredentialStatus.SUSPENDED
                    message = f"Credential is suspended (index {entry.status_list_index})"
                else:
                    status = CredentialStatus.UNKNOWN
                    message = f"Unknown status purpose: {entry.status_purpose}"
            else:
                status = CredentialStatus.VALID
                message = f"Credential status is valid ({entry.status_purpose}, index {entry.status_list_index})"

            results.append(StatusCheckResult(
                status=status,
                purpose=entry.status_purpose,
                index=entry.status_list_index,
                message=message,
            ))

        return results

    def _fetch_encoded_list(self, url: str, use_cache: bool = True) -> str:
        """Obtain the encodedList of a StatusList2021Credential.

        Raises:
            StatusListError: If fetching fails or the credential has no list.
        """
        if use_cache and url in self._cache:
            return self._cache[url]

        if self.fetch is not None:
            sl_credential = self.fetch(url)
            if sl_credential is None:
                raise StatusListError(f"StatusList not found: {url}")
        else:
            sl_credential = self._fetch_remote(url)

        subject = sl_credential.get("credentialSubject", {})
        encoded_list = subject.get("encodedList")
        if not encoded_list:
            raise StatusListError("Missing encodedList in StatusList credential")

        if use_cache:
            self._cache[url] = encoded_list

        return encoded_list

    def _fetch_remote(self, url: str) -> dict[str, Any]:
        logger.debug("Fetching StatusList from %s", url)
        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = client.get(
                    url,
                    headers={"Accept": "application/vc+ld+json, application/json"},
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            raise StatusListError(
                f"HTTP error fetching StatusList from {url}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise StatusListError(f"Network error fetching StatusList: {e}") from e
        except ValueError as e:
            raise StatusListError(f"Invalid JSON in StatusList from {url}") from e

    def clear_cache(self) -> None:
        """Clear the StatusList cache."""
        self._cache.clear()
