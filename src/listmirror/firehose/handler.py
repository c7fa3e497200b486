"""Route one label event to the list mutator, at most once."""

from __future__ import annotations

from listmirror.common.logging import get_logger
from listmirror.common.models import LabelEvent, MutationOutcome
from listmirror.lists.mutator import ListMutator
from listmirror.lists.registry import ListRegistry
from listmirror.queue.dedup import clear_processed, has_processed, mark_processed

log = get_logger(__name__)


class LabelEventHandler:
    """Applies label events; ``handle`` never raises."""

    def __init__(self, mutator: ListMutator, registry: ListRegistry) -> None:
        self.mutator = mutator
        self.registry = registry

    async def handle(self, event: LabelEvent) -> MutationOutcome:
        try:
            return await self._handle(event)
        except Exception as exc:
            log.error(
                "label_event_failed",
                uri=event.uri,
                label=event.val,
                neg=event.neg,
                error=str(exc),
                exc_info=True,
            )
            return MutationOutcome.FAILED

    async def _handle(self, event: LabelEvent) -> MutationOutcome:
        did = event.did
        if did is None:
            log.debug("label_event_skipped_non_did", uri=event.uri)
            return MutationOutcome.SKIPPED

        if event.val not in self.registry:
            log.debug("label_event_skipped_unmapped", label=event.val)
            return MutationOutcome.SKIPPED

        neg = bool(event.neg)

        if await has_processed(did, event.val, neg):
            log.debug("label_event_duplicate", did=did, label=event.val, neg=neg)
            return MutationOutcome.SKIPPED

        if neg:
            outcome = await self.mutator.remove(event.val, did)
        else:
            outcome = await self.mutator.add(event.val, did)

        # Failed mutations stay unmarked so a redelivery can retry them.
        if outcome is not MutationOutcome.FAILED:
            await mark_processed(did, event.val, neg)
            await clear_processed(did, event.val, neg)

        log.info(
            "label_event_applied",
            did=did,
            label=event.val,
            neg=neg,
            outcome=outcome.value,
            seq=event.seq,
        )
        return outcome
