"""Base XRPC client with shared error handling and lifecycle management."""

from __future__ import annotations

from typing import Any

import httpx

from listmirror.common.logging import get_logger

log = get_logger(__name__)

NOT_FOUND_ERRORS = {"RecordNotFound", "NotFound"}
CONFLICT_ERRORS = {"RecordAlreadyExists", "AlreadyExists", "Conflict"}
AUTH_ERRORS = {"AuthenticationRequired", "ExpiredToken", "InvalidToken", "AuthFactorTokenRequired"}


class RepoError(Exception):
    """XRPC call failure with structured metadata."""

    def __init__(
        self,
        integration: str,
        detail: str,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        self.integration = integration
        self.status_code = status_code
        self.error = error
        self.detail = detail
        super().__init__(f"{integration}: {detail}")


class RecordNotFoundError(RepoError):
    """The addressed record does not exist."""


class RecordConflictError(RepoError):
    """A record already exists under the requested key."""


class AuthenticationError(RepoError):
    """The session is missing, invalid or expired."""


def classify_error(
    integration: str,
    status_code: int,
    error: str | None,
    message: str,
) -> RepoError:
    """Map an XRPC error response onto the RepoError hierarchy."""
    detail = f"API error {status_code}"
    if error:
        detail = f"{detail} {error}: {message}" if message else f"{detail} {error}"

    cls: type[RepoError] = RepoError
    if status_code == 401 or error in AUTH_ERRORS:
        cls = AuthenticationError
    elif status_code == 404 or error in NOT_FOUND_ERRORS:
        cls = RecordNotFoundError
    elif status_code == 409 or error in CONFLICT_ERRORS or "already exists" in message.lower():
        cls = RecordConflictError
    return cls(integration=integration, detail=detail, status_code=status_code, error=error)


class XrpcClient:
    """Async context manager wrapping httpx.AsyncClient for ``/xrpc/{nsid}`` calls.

    Subclasses set ``_integration_name`` and implement ``_build_client()``.
    """

    _integration_name: str = "unknown"

    def _build_client(self) -> httpx.AsyncClient:
        """Create a configured httpx.AsyncClient (base_url, timeout)."""
        raise NotImplementedError

    # -- Lifecycle -----------------------------------------------------------

    async def __aenter__(self) -> XrpcClient:
        self._client = self._build_client()
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self._client.__aexit__(exc_type, exc_val, exc_tb)

    # -- Request helpers -----------------------------------------------------

    async def request(
        self,
        method: str,
        nsid: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Call an XRPC method and return its parsed JSON body.

        Raises ``RepoError`` (or a subclass) on HTTP or network failures.
        """
        try:
            resp = await self._client.request(
                method, f"/xrpc/{nsid}", params=params, json=json, headers=headers
            )
            resp.raise_for_status()
            if not resp.content:
                return {}
            return resp.json()
        except httpx.HTTPStatusError as exc:
            error, message = _error_body(exc.response)
            log.debug(
                f"{self._integration_name.lower()}_api_error",
                nsid=nsid,
                status_code=exc.response.status_code,
                error=error,
                detail=message[:500],
            )
            raise classify_error(
                self._integration_name, exc.response.status_code, error, message
            ) from exc
        except httpx.HTTPError as exc:
            log.warning(
                f"{self._integration_name.lower()}_network_error",
                nsid=nsid,
                error=str(exc),
            )
            raise RepoError(
                integration=self._integration_name,
                detail=str(exc),
            ) from exc

    async def post(
        self, nsid: str, *, json: Any | None = None, headers: dict[str, str] | None = None
    ) -> Any:
        return await self.request("POST", nsid, json=json, headers=headers)


def _error_body(response: httpx.Response) -> tuple[str | None, str]:
    """Pull ``error`` / ``message`` out of an XRPC error response."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text or ""
    if not isinstance(body, dict):
        return None, response.text or ""
    return body.get("error"), body.get("message") or ""
