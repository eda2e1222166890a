"""
authx.services.registration

User registration.

Responsibilities:
- Create the directory user with a pending activation entitlement in one call.
- Return the created user together with its activation link.
- Emit `user-signup` once the directory accepted the user.
"""

from __future__ import annotations

from typing import Any

from authx.directory.client import DirectoryClient
from authx.directory.scim import USER_SCHEMA, User
from authx.errors import InputError, failure_intent
from authx.events import USER_SIGNUP, EventEmitter, SignupEvent
from authx.observability.logging import get_logger
from authx.services.links import allowed_base_url, build_link
from authx.settings import Settings
from authx.workflow.engine import WorkflowTokenEngine
from authx.workflow.tokens import WorkflowTokenKind

log = get_logger(__name__)


class RegistrationService:
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

    async def register(
        self, *, email: str, password: str, activation_url: str | None = None
    ) -> dict[str, Any]:
        if not email or not password:
            raise InputError("user email and password are required")
        base_url = allowed_base_url(
            activation_url, self._settings.activation_urls, what="activation"
        )

        entry = self._engine.mint(WorkflowTokenKind.activation)
        body: dict[str, Any] = {
            "schemas": [USER_SCHEMA],
            "userName": email,
            "emails": [{"value": email, "primary": True}],
            "password": password,
            "active": False,
            "entitlements": [entry.to_entitlement()],
        }
        with failure_intent("unable to register the user"):
            user: User = await self._directory.create_user(body)

        link = build_link(base_url, entry.token)
        log.info("registration.created", user_id=user.get("id"))
        self._events.emit(USER_SIGNUP, SignupEvent(str(user.get("id")), link).payload())
        return {**user, "activationUrl": link}
