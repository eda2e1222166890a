"""
authx.events

Fire-and-forget event emission for the Notification Service.

Responsibilities:
- Publish named events after successful state transitions.
- Run subscribers as background tasks; log their failures, never propagate them.
- Optional webhook delivery of events to an external notifier.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from authx.observability.logging import get_logger

log = get_logger(__name__)

USER_SIGNUP = "user-signup"
USER_PASSWORD_RESET = "user-password-reset"

Handler = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class SignupEvent:
    user_id: str
    activation_link: str

    def payload(self) -> dict[str, Any]:
        return {"userId": self.user_id, "activationLink": self.activation_link}


@dataclass(frozen=True, slots=True)
class PasswordResetEvent:
    user_id: str
    reset_link: str

    def payload(self) -> dict[str, Any]:
        return {"userId": self.user_id, "resetLink": self.reset_link}


class EventEmitter:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Schedule delivery and return immediately. Must be called from a running loop."""
        handlers = self._handlers.get(event, [])
        log.info("events.emitted", event_name=event, user_id=payload.get("userId"), handlers=len(handlers))
        for handler in handlers:
            task = asyncio.get_running_loop().create_task(self._deliver(handler, event, payload))
            # Keep a strong reference until the task finishes.
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))

    @staticmethod
    async def _deliver(handler: Handler, event: str, payload: dict[str, Any]) -> None:
        try:
            await handler(event, payload)
        except Exception:
            # The state transition already happened; delivery failure is only observed.
            log.exception("events.delivery_failed", event_name=event)


class WebhookNotifier:
    """
    Posts `{"event": ..., "payload": ...}` to the configured notification endpoint.
    """

    def __init__(self, *, url: str, http: httpx.AsyncClient, timeout: float = 10.0) -> None:
        self._url = url
        self._http = http
        self._timeout = timeout

    def subscribe(self, emitter: EventEmitter) -> None:
        for event in (USER_SIGNUP, USER_PASSWORD_RESET):
            emitter.on(event, self.deliver)

    async def deliver(self, event: str, payload: dict[str, Any]) -> None:
        r = await self._http.post(
            self._url,
            json={"event": event, "payload": payload},
            timeout=self._timeout,
        )
        r.raise_for_status()
        log.info("events.delivered", event_name=event, status=r.status_code)
