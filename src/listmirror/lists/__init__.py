"""List registry, record-key schemes and the membership mutator."""

from listmirror.lists.limits import MutationLimiter
from listmirror.lists.mutator import ListMutator
from listmirror.lists.registry import ListRegistry, list_uri

__all__ = ["ListMutator", "ListRegistry", "MutationLimiter", "list_uri"]
