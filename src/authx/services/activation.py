"""
authx.services.activation

Account activation flows.
"""

from __future__ import annotations

from authx.directory.client import DirectoryClient
from authx.directory.scim import User, replace
from authx.errors import InputError, failure_intent
from authx.events import USER_SIGNUP, EventEmitter, SignupEvent
from authx.services.links import allowed_base_url, build_link, find_by_user_name
from authx.settings import Settings
from authx.workflow.engine import WorkflowTokenEngine
from authx.workflow.tokens import WorkflowTokenKind


class ActivationService:
    def __init__(
        self,
        *,
        settings: Settings,
        directory: DirectoryClient,
        engine: WorkflowTokenEngine,
        events: EventEmitter,
    ) -> None:
        self._settings = settings
        self._directory = directory
        self._engine = engine
        self._events = events

    async def activate(self, activation_token: str) -> User:
        if not activation_token:
            raise InputError("activation token is required")
        with failure_intent("unable to activate user"):
            return await self._engine.consume(
                WorkflowTokenKind.activation,
                activation_token,
                [replace("active", True)],
            )

    async def resend(self, *, user_name: str, activation_url: str | None = None) -> None:
        """Issue a fresh activation token; the previous pending one is retired."""
        if not user_name:
            raise InputError("userId is required")
        base_url = allowed_base_url(
            activation_url, self._settings.activation_urls, what="activation"
        )
        with failure_intent("unable to resend the activation link"):
            user = await find_by_user_name(self._directory, user_name)
            if user.get("active") is True:
                raise InputError("user is already active")
            token = await self._engine.generate(str(user["id"]), WorkflowTokenKind.activation)

        link = build_link(base_url, token)
        self._events.emit(USER_SIGNUP, SignupEvent(str(user["id"]), link).payload())
