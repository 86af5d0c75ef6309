"""
In-process storage collaborators.

Status list updates are read-modify-write over a single encoded string, so
the status list store serializes writes per list.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from openbadge_vc.keys import InMemoryKeyStore
from openbadge_vc.statuslist import set_credential_status

logger = logging.getLogger(__name__)


class InMemoryCredentialStore:
    """Assertions and credentials keyed by id."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}

    def save(self, document_id: str, document: dict[str, Any]) -> None:
        self._documents[document_id] = copy.deepcopy(document)

    def get(self, document_id: str) -> dict[str, Any] | None:
        document = self._documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None


class InMemoryStatusListStore:
    """StatusList2021 credentials keyed by id, one writer per list at a time."""

    def __init__(self) -> None:
        self._lists: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, list_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(list_id, threading.Lock())

    def save(self, status_list_credential: dict[str, Any]) -> None:
        list_id = status_list_credential["id"]
        with self._lock_for(list_id):
            self._lists[list_id] = copy.deepcopy(status_list_credential)

    def get(self, list_id: str) -> dict[str, Any] | None:
        with self._lock_for(list_id):
            stored = self._lists.get(list_id)
            return copy.deepcopy(stored) if stored is not None else None

    def get_or_create(
        self, list_id: str, factory: Callable[[], dict[str, Any]]
    ) -> dict[str, Any]:
        """Return the stored list, saving ``factory()`` first if there is none."""
        with self._lock_for(list_id):
            if list_id not in self._lists:
                self._lists[list_id] = copy.deepcopy(factory())
            return copy.deepcopy(self._lists[list_id])

    def update_status(self, list_id: str, index: int, revoked: bool) -> dict[str, Any]:
        """Set or clear one index of a stored list.

        Raises:
            KeyError: If no list with ``list_id`` is stored.
            IndexOutOfRange: If ``index`` is outside the list.
        """
        with self._lock_for(list_id):
            if list_id not in self._lists:
                raise KeyError(f"Status list not found: {list_id}")
            updated = set_credential_status(
                copy.deepcopy(self._lists[list_id]), index, revoked
            )
            self._lists[list_id] = updated
            logger.info(
                "Status list %s index %d %s",
                list_id,
                index,
                "set" if revoked else "cleared",
            )
            return copy.deepcopy(updated)


@dataclass
class StorageContext:
    """Storage handles passed explicitly to services."""

    keys: InMemoryKeyStore = field(default_factory=InMemoryKeyStore)
    credentials: InMemoryCredentialStore = field(default_factory=InMemoryCredentialStore)
    status_lists: InMemoryStatusListStore = field(default_factory=InMemoryStatusListStore)
