"""Authenticated client for the account's own repository (PDS)."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx

from listmirror.common.logging import get_logger
from listmirror.repo._base import AuthenticationError, XrpcClient

log = get_logger(__name__)

LIST_PAGE_SIZE = 100


class RepoClient(XrpcClient):
    """Session-holding client for ``com.atproto.repo.*`` record operations.

    ``repo`` is the DID whose records are read and written.  Calls made
    before ``login()`` log in lazily; an ``ExpiredToken`` response triggers
    one re-login and a retry.
    """

    _integration_name = "Repo"

    def __init__(
        self,
        service: str,
        identifier: str,
        password: str,
        repo: str,
        *,
        timeout: float = 30.0,
    ) -> None:
        self.service = service
        self.identifier = identifier
        self.password = password
        self.repo = repo
        self.timeout = timeout
        self.session_did: str | None = None
        self._access_jwt: str | None = None
        self._login_lock = asyncio.Lock()

    @property
    def logged_in(self) -> bool:
        return self._access_jwt is not None

    def _build_client(self) -> httpx.AsyncClient:
        base_url = self.service if "://" in self.service else f"https://{self.service}"
        return httpx.AsyncClient(base_url=base_url, timeout=self.timeout)

    # -- Session -------------------------------------------------------------

    async def login(self) -> None:
        """Create a session with handle + app password."""
        await self._create_session(stale_token=self._access_jwt)

    async def _create_session(self, stale_token: str | None) -> None:
        async with self._login_lock:
            if self._access_jwt != stale_token:
                # another task already replaced the session while we waited
                return
            data = await self.post(
                "com.atproto.server.createSession",
                json={"identifier": self.identifier, "password": self.password},
            )
            self._access_jwt = data["accessJwt"]
            self.session_did = data.get("did")
            log.info("repo_logged_in", handle=data.get("handle"), did=self.session_did)
            if self.session_did and self.session_did != self.repo:
                log.warning("repo_did_mismatch", session_did=self.session_did, repo=self.repo)

    async def _authed(
        self,
        method: str,
        nsid: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Any:
        if not self.logged_in:
            await self._create_session(stale_token=None)
        token = self._access_jwt
        try:
            return await self.request(
                method, nsid, params=params, json=json, headers=self._auth_headers()
            )
        except AuthenticationError as exc:
            if exc.error != "ExpiredToken":
                raise
            log.info("repo_session_expired")
            await self._create_session(stale_token=token)
            return await self.request(
                method, nsid, params=params, json=json, headers=self._auth_headers()
            )

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_jwt}"}

    # -- Records -------------------------------------------------------------

    async def create_record(
        self,
        collection: str,
        record: dict[str, Any],
        *,
        rkey: str | None = None,
    ) -> dict[str, Any]:
        """Create a record; raises RecordConflictError if ``rkey`` is taken."""
        body: dict[str, Any] = {"repo": self.repo, "collection": collection, "record": record}
        if rkey is not None:
            body["rkey"] = rkey
        return await self._authed("POST", "com.atproto.repo.createRecord", json=body)

    async def get_record(self, collection: str, rkey: str) -> dict[str, Any]:
        """Fetch one record; raises RecordNotFoundError on a miss."""
        return await self._authed(
            "GET",
            "com.atproto.repo.getRecord",
            params={"repo": self.repo, "collection": collection, "rkey": rkey},
        )

    async def delete_record(self, collection: str, rkey: str) -> None:
        """Delete a record; raises RecordNotFoundError if it does not exist.

        The PDS treats deleting an absent record as success, so existence is
        checked first.
        """
        await self.get_record(collection, rkey)
        await self._authed(
            "POST",
            "com.atproto.repo.deleteRecord",
            json={"repo": self.repo, "collection": collection, "rkey": rkey},
        )

    async def list_records(
        self,
        collection: str,
        *,
        limit: int = LIST_PAGE_SIZE,
        cursor: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """One page of records plus the cursor for the next page (None at the end)."""
        params: dict[str, Any] = {"repo": self.repo, "collection": collection, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        data = await self._authed("GET", "com.atproto.repo.listRecords", params=params)
        return data.get("records", []), data.get("cursor")

    async def iter_records(
        self, collection: str, *, page_size: int = LIST_PAGE_SIZE
    ) -> AsyncIterator[dict[str, Any]]:
        """Walk every record in ``collection``, following cursors."""
        cursor: str | None = None
        while True:
            records, next_cursor = await self.list_records(
                collection, limit=page_size, cursor=cursor
            )
            for record in records:
                yield record
            if not next_cursor or not records or next_cursor == cursor:
                return
            cursor = next_cursor

