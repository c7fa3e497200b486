"""Client for the account's PDS repository."""

from listmirror.repo._base import (
    AuthenticationError,
    RecordConflictError,
    RecordNotFoundError,
    RepoError,
    XrpcClient,
)
from listmirror.repo.client import RepoClient

__all__ = [
    "AuthenticationError",
    "RecordConflictError",
    "RecordNotFoundError",
    "RepoClient",
    "RepoError",
    "XrpcClient",
]
