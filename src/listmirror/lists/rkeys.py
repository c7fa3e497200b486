"""Record key schemes for list items.

List items have been written under three key schemes over time and old
records were never migrated:

1. legacy: server-assigned TID, only findable by scanning the collection
2. separator: ``{list_rkey}-{did with ':' replaced by '_'}``
3. alphanumeric: ``{list_rkey}{did without "did:" and non-alphanumerics}`` (current)

New items are always created with the alphanumeric key.
"""

from __future__ import annotations

import re

from listmirror.common.models import DID_PREFIX

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def alphanumeric_rkey(list_rkey: str, did: str) -> str:
    """``3kexample`` + ``did:plc:abc`` -> ``3kexampleplcabc``."""
    method_specific = did.removeprefix(DID_PREFIX)
    return f"{list_rkey}{_NON_ALNUM.sub('', method_specific)}"


def separator_rkey(list_rkey: str, did: str) -> str:
    return f"{list_rkey}-{did.replace(':', '_')}"


def candidate_rkeys(list_rkey: str, did: str) -> list[str]:
    """Deterministic keys to try on delete, newest scheme first."""
    keys = [alphanumeric_rkey(list_rkey, did), separator_rkey(list_rkey, did)]
    return list(dict.fromkeys(keys))


def rkey_from_uri(uri: str) -> str:
    """Last path segment of an AT URI."""
    return uri.rstrip("/").rsplit("/", 1)[-1]
