"""Static label -> list mapping."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from listmirror.common.models import LIST_COLLECTION, ListDefinition


class ListRegistry:
    """Read-only lookup of the lists this deployment mirrors labels into.

    Labels must be unique; the order definitions are given in does not
    matter.
    """

    def __init__(self, definitions: Iterable[ListDefinition] = ()) -> None:
        self._by_label: dict[str, ListDefinition] = {}
        for definition in definitions:
            if definition.label in self._by_label:
                raise ValueError(f"Duplicate list label: {definition.label}")
            self._by_label[definition.label] = definition

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> ListRegistry:
        """Build from a ``{label: list_rkey}`` mapping (the settings shape)."""
        return cls(ListDefinition(label=label, rkey=rkey) for label, rkey in mapping.items())

    def get(self, label: str) -> ListDefinition | None:
        return self._by_label.get(label)

    def labels(self) -> list[str]:
        return sorted(self._by_label)

    def __contains__(self, label: object) -> bool:
        return label in self._by_label

    def __len__(self) -> int:
        return len(self._by_label)


def list_uri(owner_did: str, definition: ListDefinition) -> str:
    """AT URI of the list record, e.g. ``at://did:plc:owner/app.bsky.graph.list/3k...``."""
    return f"at://{owner_did}/{LIST_COLLECTION}/{definition.rkey}"
