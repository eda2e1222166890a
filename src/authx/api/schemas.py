"""
authx.api.schemas

Request/response bodies. Field aliases keep the camelCase wire names.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Envelope(BaseModel):
    success: bool = True
    data: Any = None


def ok(data: Any = None) -> Envelope:
    return Envelope(success=True, data=data)


class NewUser(_Body):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=1024)


class RegisterRequest(_Body):
    user: NewUser
    activation_url: str | None = Field(default=None, alias="activationUrl")


class ModifyUserBody(_Body):
    operations: list[dict[str, Any]] = Field(alias="Operations", min_length=1)


class ModifyUserRequest(_Body):
    user: ModifyUserBody


class ActivateRequest(_Body):
    activation_token: str = Field(alias="activationToken", min_length=1)


class ResendActivationRequest(_Body):
    user_id: str = Field(alias="userId", min_length=1)
    activation_url: str | None = Field(default=None, alias="activationUrl")


class ForgotPasswordRequest(_Body):
    user_id: str = Field(alias="userId", min_length=1)
    reset_url: str | None = Field(default=None, alias="resetUrl")


class ResetPasswordRequest(_Body):
    reset_password_token: str = Field(alias="resetPasswordToken", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=1)


class ChangePasswordRequest(_Body):
    username: str = Field(min_length=1)
    old_password: str = Field(alias="oldPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=1)
