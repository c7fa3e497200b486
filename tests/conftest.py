"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from listmirror.common.models import LabelEvent
from listmirror.lists.limits import MutationLimiter
from listmirror.lists.mutator import ListMutator
from listmirror.lists.registry import ListRegistry

OWNER_DID = "did:plc:owner"


@pytest.fixture
def registry() -> ListRegistry:
    return ListRegistry.from_mapping({"maga-trump": "3kexample", "spam": "3kspam"})


@pytest.fixture
def repo() -> MagicMock:
    """Stand-in RepoClient: record calls are AsyncMocks, the scan yields ``repo.scan_records``."""
    client = MagicMock()
    client.repo = OWNER_DID
    client.create_record = AsyncMock(return_value={"uri": "at://x", "cid": "bafy"})
    client.delete_record = AsyncMock(return_value=None)
    client.scan_records = []

    async def _iter_records(collection: str, **_: Any) -> AsyncIterator[dict]:
        for record in client.scan_records:
            yield record

    client.iter_records = MagicMock(side_effect=_iter_records)
    return client


@pytest.fixture
def mutator(repo: MagicMock, registry: ListRegistry) -> ListMutator:
    return ListMutator(repo, registry, MutationLimiter(2), owner_did=OWNER_DID)


@pytest.fixture
def label_event() -> LabelEvent:
    return LabelEvent(
        src="did:plc:labeler",
        uri="did:plc:abc",
        val="maga-trump",
        neg=False,
        seq=10,
        cts="2024-11-01T00:00:00.000Z",
    )
