"""Add and remove list memberships in the owner's repository."""

from __future__ import annotations

from listmirror.common.logging import get_logger
from listmirror.common.models import LIST_ITEM_COLLECTION, ListItemRecord, MutationOutcome
from listmirror.lists.limits import MutationLimiter
from listmirror.lists.registry import ListRegistry, list_uri
from listmirror.lists.rkeys import alphanumeric_rkey, candidate_rkeys, rkey_from_uri
from listmirror.repo import RecordConflictError, RecordNotFoundError, RepoClient, RepoError

log = get_logger(__name__)


class ListMutator:
    """Applies label events to list items.

    Failures are logged and reported through the returned ``MutationOutcome``;
    nothing is raised and nothing is retried here.
    """

    def __init__(
        self,
        repo: RepoClient,
        registry: ListRegistry,
        limiter: MutationLimiter,
        *,
        owner_did: str | None = None,
    ) -> None:
        self.repo = repo
        self.registry = registry
        self.limiter = limiter
        self.owner_did = owner_did or repo.repo

    async def add(self, label: str, did: str) -> MutationOutcome:
        """Create the list item for ``did`` under the current key scheme."""
        definition = self.registry.get(label)
        if definition is None:
            log.warning("list_not_found_for_label", label=label)
            return MutationOutcome.SKIPPED

        rkey = alphanumeric_rkey(definition.rkey, did)
        record = ListItemRecord(subject=did, list=list_uri(self.owner_did, definition))
        log.info("list_item_adding", label=label, did=did, rkey=rkey)

        async with self.limiter:
            try:
                await self.repo.create_record(LIST_ITEM_COLLECTION, record.to_record(), rkey=rkey)
            except RecordConflictError:
                log.info("list_item_already_member", label=label, did=did, rkey=rkey)
                return MutationOutcome.ALREADY_MEMBER
            except RepoError as exc:
                log.error(
                    "list_item_add_failed",
                    label=label,
                    did=did,
                    status_code=exc.status_code,
                    error=str(exc),
                )
                return MutationOutcome.FAILED

        log.info("list_item_added", label=label, did=did, rkey=rkey)
        return MutationOutcome.ADDED

    async def remove(self, label: str, did: str) -> MutationOutcome:
        """Delete the list item for ``did`` whichever key scheme created it.

        Tries the alphanumeric key, then the separator key, then scans the
        whole collection for a legacy record with a server-assigned key.
        """
        definition = self.registry.get(label)
        if definition is None:
            log.warning("list_not_found_for_label", label=label)
            return MutationOutcome.SKIPPED

        uri = list_uri(self.owner_did, definition)
        log.info("list_item_removing", label=label, did=did)

        async with self.limiter:
            try:
                for rkey in candidate_rkeys(definition.rkey, did):
                    if await self._try_delete(rkey):
                        log.info("list_item_removed", label=label, did=did, rkey=rkey)
                        return MutationOutcome.REMOVED

                rkey = await self._find_legacy_rkey(uri, did)
                if rkey is not None and await self._try_delete(rkey):
                    log.info(
                        "list_item_removed", label=label, did=did, rkey=rkey, legacy=True
                    )
                    return MutationOutcome.REMOVED
            except RepoError as exc:
                log.error(
                    "list_item_remove_failed",
                    label=label,
                    did=did,
                    status_code=exc.status_code,
                    error=str(exc),
                )
                return MutationOutcome.FAILED

        log.warning("list_item_not_found", label=label, did=did, detail="user may not be in list")
        return MutationOutcome.NOT_FOUND

    async def _try_delete(self, rkey: str) -> bool:
        try:
            await self.repo.delete_record(LIST_ITEM_COLLECTION, rkey)
        except RecordNotFoundError:
            log.debug("list_item_rkey_miss", rkey=rkey)
            return False
        return True

    async def _find_legacy_rkey(self, uri: str, did: str) -> str | None:
        """Page through every list item looking for (subject, list) by value."""
        scanned = 0
        async for item in self.repo.iter_records(LIST_ITEM_COLLECTION):
            scanned += 1
            value = item.get("value") or {}
            if value.get("subject") == did and value.get("list") == uri:
                log.debug("list_item_scan_match", uri=item.get("uri"), scanned=scanned)
                return rkey_from_uri(item["uri"])
        log.debug("list_item_scan_exhausted", list=uri, did=did, scanned=scanned)
        return None
