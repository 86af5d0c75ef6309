"""
Settings read from environment variables.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

from openbadge_vc.statuslist import DEFAULT_STATUS_LIST_SIZE


def interpret_as_bool(boolify: str | bool | int) -> bool:
    """Convert an input to a boolean using common conventions."""
    if isinstance(boolify, bool):
        return boolify
    if isinstance(boolify, int):
        return boolify > 0
    if isinstance(boolify, str):
        return re.match(r"^(y|yes|1|true|on)$", boolify.strip(), re.IGNORECASE) is not None
    raise ValueError(f"Can't boolify a {boolify!r}.")


class Settings:
    def __init__(self, environ: Mapping[str, str] | None = None):
        env = os.environ if environ is None else environ

        self.host_url: str = env.get("OPENBADGE_HOST_URL", "http://localhost:7777").rstrip("/")
        '''Base URL used in badge, assertion, issuer and status list ids.'''

        self.status_list_size: int = int(
            env.get("OPENBADGE_STATUS_LIST_SIZE", DEFAULT_STATUS_LIST_SIZE)
        )
        '''Number of entries in newly created status lists. Default: 16384.'''
        if self.status_list_size <= 0:
            raise ValueError(f"OPENBADGE_STATUS_LIST_SIZE must be positive: {self.status_list_size}")

        self.log_level: str = env.get("OPENBADGE_LOG_LEVEL", "INFO").upper()
        self.http_timeout: float = float(env.get("OPENBADGE_HTTP_TIMEOUT", "30.0"))
        '''Timeout in seconds for fetching status lists and DID documents.'''

        self.verify_ssl: bool = interpret_as_bool(env.get("OPENBADGE_VERIFY_SSL", "true"))
