"""
authx.services.passwords

Password flows: forgot/reset via workflow token, and authenticated change.

Responsibilities:
- Issue a reset token and emit `user-password-reset` with the reset link.
- Consume a reset token and set the new password in the same patch.
- Change a password after verifying the old one with a password grant.
"""

from __future__ import annotations

from authx.auth.openid import OpenIdClient
from authx.directory.client import DirectoryClient
from authx.directory.scim import User, replace
from authx.errors import InputError, Unauthorized, UpstreamAuthError, failure_intent
from authx.events import USER_PASSWORD_RESET, EventEmitter, PasswordResetEvent
from authx.observability.logging import get_logger
from authx.services.links import allowed_base_url, build_link, find_by_user_name
from authx.settings import Settings
from authx.workflow.engine import WorkflowTokenEngine
from authx.workflow.tokens import WorkflowTokenKind

log = get_logger(__name__)


class PasswordService:
    def __init__(
        self,
        *,
        settings: Settings,
        directory: DirectoryClient,
        engine: WorkflowTokenEngine,
        events: EventEmitter,
        issuer: OpenIdClient,
    ) -> None:
        self._settings = settings
        self._directory = directory
        self._engine = engine
        self._events = events
        self._issuer = issuer

    async def forgot_password(self, *, user_name: str, reset_url: str | None = None) -> None:
        if not user_name:
            raise InputError("userId is required")
        base_url = allowed_base_url(
            reset_url, self._settings.password_reset_urls, what="password reset"
        )
        with failure_intent("unable to start the password reset"):
            user = await find_by_user_name(self._directory, user_name)
            token = await self._engine.generate(str(user["id"]), WorkflowTokenKind.password_reset)

        link = build_link(base_url, token)
        self._events.emit(
            USER_PASSWORD_RESET, PasswordResetEvent(str(user["id"]), link).payload()
        )

    async def reset_password(self, *, reset_token: str, new_password: str) -> User:
        if not reset_token:
            raise InputError("reset password token is required")
        if not new_password:
            raise InputError("new password is required")
        with failure_intent("unable to change password"):
            return await self._engine.consume(
                WorkflowTokenKind.password_reset,
                reset_token,
                [replace("password", new_password)],
            )

    async def change_password(
        self, *, user_id: str, username: str, old_password: str, new_password: str
    ) -> User:
        if not (username and old_password and new_password):
            raise InputError("username, oldPassword and newPassword are required")

        with failure_intent("unable to change password"):
            user = await self._directory.get_user(user_id)
            if user.get("userName") != username:
                raise Unauthorized("invalid credentials")
            try:
                # A successful grant proves the old password; the credential is discarded.
                await self._issuer.grant(username, old_password)
            except UpstreamAuthError as e:
                log.info("password.change_rejected", user_id=user_id)
                raise Unauthorized("invalid credentials", detail=e.detail) from e
            return await self._directory.modify_user(
                user_id, [replace("password", new_password)]
            )
