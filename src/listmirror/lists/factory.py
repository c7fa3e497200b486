"""Build the list-mirroring components from settings."""

from __future__ import annotations

from listmirror.common.settings import Settings
from listmirror.lists.limits import MutationLimiter
from listmirror.lists.mutator import ListMutator
from listmirror.lists.registry import ListRegistry
from listmirror.repo import RepoClient


def create_registry(settings: Settings) -> ListRegistry:
    return ListRegistry.from_mapping(settings.list_registry)


def create_repo_client(settings: Settings) -> RepoClient:
    """Repository client for the account in settings (not yet entered or logged in)."""
    return RepoClient(
        service=settings.pds,
        identifier=settings.bsky_handle,
        password=settings.bsky_password,
        repo=settings.did,
        timeout=settings.http_timeout_seconds,
    )


def create_mutator(
    settings: Settings,
    repo: RepoClient,
    registry: ListRegistry | None = None,
) -> ListMutator:
    return ListMutator(
        repo=repo,
        registry=registry or create_registry(settings),
        limiter=MutationLimiter(settings.mutation_concurrency),
        owner_did=settings.did,
    )
