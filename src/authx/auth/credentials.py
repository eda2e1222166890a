"""
authx.auth.credentials

Service credential cache.

Responsibilities:
- Hold the single access credential used for outbound directory calls.
- Refresh it before expiry (`now + skew < expires_at` keeps the current value).
- Serialize refreshes so concurrent callers share one refresh round trip.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from authx.auth.models import Credential
from authx.auth.openid import OpenIdClient
from authx.errors import InternalError
from authx.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_SKEW_SECONDS = 5


class CredentialCache:
    """
    Owns one Credential; constructed once and injected into every outbound client.

    The cached value is only ever replaced whole, after a successful acquire/refresh.
    """

    def __init__(
        self,
        *,
        issuer: OpenIdClient,
        skew_seconds: int = DEFAULT_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._issuer = issuer
        self._skew = skew_seconds
        self._clock = clock
        self._credential: Credential | None = None
        # One exchange per refresh token; every concurrent caller awaits the same task.
        self._inflight: dict[str, asyncio.Task[Credential]] = {}

    @property
    def current(self) -> Credential | None:
        return self._credential

    @property
    def initialized(self) -> bool:
        return self._credential is not None

    def is_fresh(self, credential: Credential) -> bool:
        return self._clock() + self._skew < credential.expires_at

    async def acquire(self, username: str, password: str) -> Credential:
        # UpstreamAuthError propagates and leaves the cached value untouched.
        credential = await self._issuer.grant(username, password)
        self._credential = credential
        log.info("credential.acquired", expires_at=credential.expires_at)
        return credential

    async def ensure_valid(self, current: Credential | None = None) -> Credential:
        credential = current if current is not None else self._credential
        if credential is None:
            raise InternalError("uninitialized credential")
        if self.is_fresh(credential):
            return credential
        return await self._refresh_stale(credential)

    async def refresh(self, refresh_token: str) -> Credential:
        return await self._shared_exchange(refresh_token)

    async def access_token(self) -> str:
        return (await self.ensure_valid()).access_token

    async def _refresh_stale(self, stale: Credential) -> Credential:
        cached = self._credential
        # Another caller already replaced the stale value.
        if cached is not None and cached is not stale and self.is_fresh(cached):
            return cached
        return await self._shared_exchange(stale.refresh_token)

    async def _shared_exchange(self, refresh_token: str) -> Credential:
        task = self._inflight.get(refresh_token)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._exchange(refresh_token))
            self._inflight[refresh_token] = task
            task.add_done_callback(lambda t: self._settle(refresh_token, t))
        # A cancelled caller must not cancel the exchange the others are waiting on.
        return await asyncio.shield(task)

    def _settle(self, refresh_token: str, task: asyncio.Task[Credential]) -> None:
        if self._inflight.get(refresh_token) is task:
            del self._inflight[refresh_token]
        if not task.cancelled():
            # Mark the outcome retrieved even when every awaiter went away.
            task.exception()

    async def _exchange(self, refresh_token: str) -> Credential:
        log.info("credential.refreshing")
        try:
            credential = await self._issuer.refresh(refresh_token)
        except Exception:
            log.warning("credential.refresh_failed")
            raise
        self._credential = credential
        log.info("credential.refreshed", expires_at=credential.expires_at)
        return credential


# --- Module Notes -----------------------------------------------------------
# A failed refresh never hands back the stale credential. Callers that joined the
# failed exchange all receive its error; the stale value stays cached so the next
# caller after that attempts the refresh again.
