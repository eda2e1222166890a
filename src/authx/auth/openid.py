"""
authx.auth.openid

HTTP client boundary for the OpenID issuer.

Responsibilities:
- Password grant and refresh-token exchanges producing `Credential` values.
- Token introspection producing `IntrospectionResult` values.
- Turn OAuth error bodies into `UpstreamAuthError` carrying the error code.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from authx.auth.models import Credential, IntrospectionResult
from authx.errors import (
    UpstreamAuthError,
    UpstreamError,
    classify_http_error,
    upstream_detail,
)
from authx.observability.logging import get_logger
from authx.settings import Settings

log = get_logger(__name__)

Clock = Callable[[], float]


class OpenIdClient:
    """
    Thin async client for the issuer's token and introspection endpoints.

    The client authenticates itself with HTTP basic auth (client id/secret).
    """

    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        clock: Clock = time.time,
    ) -> None:
        self._settings = settings
        self._http = http
        self._clock = clock
        self._client_auth = httpx.BasicAuth(
            settings.openid_client_id, settings.openid_client_secret
        )

    async def grant(
        self, username: str, password: str, *, scopes: Sequence[str] | None = None
    ) -> Credential:
        scope = " ".join(scopes if scopes is not None else self._settings.openid_grant_scopes)
        body = await self._post(
            self._settings.openid_token_endpoint,
            {
                "grant_type": "password",
                "username": username,
                "password": password,
                "scope": scope,
            },
            intent="password grant rejected",
        )
        return self._credential(body)

    async def refresh(self, refresh_token: str) -> Credential:
        body = await self._post(
            self._settings.openid_token_endpoint,
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            intent="refresh grant rejected",
        )
        return self._credential(body)

    async def introspect(self, token: str) -> IntrospectionResult:
        body = await self._post(
            self._settings.openid_introspection_endpoint,
            {"token": token, "token_type_hint": "access_token"},
            intent="token introspection failed",
        )
        return _introspection(body)

    async def _post(self, url: str, form: dict[str, str], *, intent: str) -> dict[str, Any]:
        try:
            r = await self._http.post(
                url,
                data=form,
                auth=self._client_auth,
                headers={"Accept": "application/json"},
                timeout=self._settings.http_timeout,
            )
        except httpx.HTTPError as e:
            raise classify_http_error(e, intent=intent) from e

        if 400 <= r.status_code < 500:
            raise UpstreamAuthError(intent, detail=upstream_detail(r), code=_oauth_error_code(r))
        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise classify_http_error(e, intent=intent) from e

        try:
            body = r.json()
        except ValueError as e:
            raise UpstreamError(intent, detail="issuer returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise UpstreamError(intent, detail="issuer returned an unexpected body")
        return body

    def _credential(self, body: dict[str, Any]) -> Credential:
        try:
            access_token = str(body["access_token"])
            if "expires_at" in body:
                expires_at = int(body["expires_at"])
            else:
                expires_at = int(self._clock()) + int(body["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(
                "issuer returned a malformed token response", detail=str(e)
            ) from e
        return Credential(
            access_token=access_token,
            token_type=str(body.get("token_type", "bearer")),
            expires_at=expires_at,
            refresh_token=str(body.get("refresh_token", "")),
        )


def _oauth_error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


def _introspection(body: dict[str, Any]) -> IntrospectionResult:
    # Gluu answers with a `scopes` list; RFC 7662 issuers use a space-delimited `scope`.
    if "scopes" in body:
        raw = body["scopes"]
        if not isinstance(raw, list):
            raise UpstreamError(
                "token introspection failed", detail="`scopes` is not a list"
            )
        scopes = frozenset(str(s) for s in raw)
    elif isinstance(body.get("scope"), str):
        scopes = frozenset(body["scope"].split())
    elif body.get("active") is False:
        scopes = frozenset()
    else:
        raise UpstreamError(
            "token introspection failed", detail="response carries no scopes"
        )
    return IntrospectionResult(
        active=bool(body.get("active", True)),
        scopes=scopes,
        subject=body.get("sub"),
        client_id=body.get("client_id"),
    )


# --- Module Notes -----------------------------------------------------------
# Any 4xx from the issuer is an explicit rejection (UpstreamAuthError); 5xx and
# transport failures go through `classify_http_error` like every other upstream.
