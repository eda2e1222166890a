"""
authx.directory.client

HTTP client boundary for the Directory Service (SCIM `/Users`).

Responsibilities:
- Attach the service bearer credential from the `CredentialCache` to every call.
- Expose list/get/create/modify/delete over SCIM.
- Classify upstream failures into the error taxonomy at this boundary.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from authx.auth.credentials import CredentialCache
from authx.directory.scim import (
    PATCH_SCHEMA,
    SCIM_CONTENT_TYPE,
    PatchOperation,
    User,
)
from authx.errors import UpstreamError, classify_http_error
from authx.observability.logging import get_logger
from authx.settings import Settings

log = get_logger(__name__)


class DirectoryClient:
    """
    SCIM client. `http` is expected to carry `base_url=settings.scim_base_url`.

    No retries: a failure is classified and surfaced to the caller.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        credentials: CredentialCache,
    ) -> None:
        self._settings = settings
        self._http = http
        self._credentials = credentials

    async def list_users(self, filter: str | None = None, **params: Any) -> dict[str, Any]:
        if filter is not None:
            params["filter"] = filter
        return await self._request("GET", "/Users", params=params, intent="unable to list users")

    async def get_user(self, user_id: str, **params: Any) -> User:
        return await self._request(
            "GET", f"/Users/{user_id}", params=params, intent="unable to get user"
        )

    async def create_user(self, body: dict[str, Any]) -> User:
        return await self._request("POST", "/Users", json=body, intent="unable to create user")

    async def modify_user(
        self,
        user_id: str,
        operations: Sequence[PatchOperation | dict[str, Any]],
        *,
        if_match: str | None = None,
        **params: Any,
    ) -> User:
        payload = {
            "schemas": [PATCH_SCHEMA],
            "Operations": [
                op.to_dict() if isinstance(op, PatchOperation) else op for op in operations
            ],
        }
        headers = {"If-Match": if_match} if if_match else None
        return await self._request(
            "PATCH",
            f"/Users/{user_id}",
            params=params,
            json=payload,
            headers=headers,
            intent="unable to update user",
        )

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/Users/{user_id}", intent="unable to delete user")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        intent: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        # Raises InternalError("uninitialized credential") before any network call.
        token = await self._credentials.access_token()
        merged = {
            "Authorization": f"Bearer {token}",
            "Content-Type": SCIM_CONTENT_TYPE,
            "Accept": SCIM_CONTENT_TYPE,
        }
        merged.update(headers or {})

        try:
            r = await self._http.request(
                method,
                path,
                params=params or None,
                json=json,
                headers=merged,
                timeout=self._settings.directory_timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            err = classify_http_error(e, intent=intent)
            log.warning(
                "directory.request_failed",
                method=method,
                path=path,
                error=err.__class__.__name__,
                detail=err.detail,
            )
            raise err from e

        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(intent, detail="directory returned a non-JSON body") from e


# --- Module Notes -----------------------------------------------------------
# The credential is read per request: a refresh performed for one call is picked
# up by every subsequent call through the shared cache.
