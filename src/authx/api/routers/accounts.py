"""
authx.api.routers.accounts

Account workflow endpoints driven by workflow tokens.

Responsibilities:
- Activation and activation resend.
- Forgot/reset password via emailed token.
- Authenticated password change (old password verified with the issuer).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from authx.api.deps import activation_dep, passwords_dep
from authx.api.schemas import (
    ActivateRequest,
    ChangePasswordRequest,
    Envelope,
    ForgotPasswordRequest,
    ResendActivationRequest,
    ResetPasswordRequest,
    ok,
)
from authx.auth.deps import require_scope
from authx.services.activation import ActivationService
from authx.services.passwords import PasswordService

router = APIRouter(prefix="/v1/users", tags=["accounts"])


@router.post("/activate", response_model=Envelope)
async def activate_user(
    body: ActivateRequest,
    activation: ActivationService = Depends(activation_dep),
) -> Envelope:
    return ok(await activation.activate(body.activation_token))


@router.post("/resendActivation", response_model=Envelope)
async def resend_activation(
    body: ResendActivationRequest,
    activation: ActivationService = Depends(activation_dep),
) -> Envelope:
    await activation.resend(user_name=body.user_id, activation_url=body.activation_url)
    return ok()


@router.post("/forgotPassword", response_model=Envelope)
async def forgot_password(
    body: ForgotPasswordRequest,
    passwords: PasswordService = Depends(passwords_dep),
) -> Envelope:
    await passwords.forgot_password(user_name=body.user_id, reset_url=body.reset_url)
    return ok()


@router.post("/changePassword", response_model=Envelope)
async def reset_password(
    body: ResetPasswordRequest,
    passwords: PasswordService = Depends(passwords_dep),
) -> Envelope:
    # Token-based reset; the link in the reset email lands here.
    user = await passwords.reset_password(
        reset_token=body.reset_password_token, new_password=body.new_password
    )
    return ok({"id": user.get("id")})


@router.post(
    "/{user_id}/password",
    response_model=Envelope,
    dependencies=[Depends(require_scope())],
)
async def change_password(
    user_id: str,
    body: ChangePasswordRequest,
    passwords: PasswordService = Depends(passwords_dep),
) -> Envelope:
    user = await passwords.change_password(
        user_id=user_id,
        username=body.username,
        old_password=body.old_password,
        new_password=body.new_password,
    )
    return ok({"id": user.get("id")})
