"""
authx.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Encapsulate app.state access patterns (services, directory client, credential cache).
"""

from __future__ import annotations

from fastapi import Request

from authx.auth.credentials import CredentialCache
from authx.directory.client import DirectoryClient
from authx.services.activation import ActivationService
from authx.services.passwords import PasswordService
from authx.services.registration import RegistrationService

# Everything below is created once in the `authx.api.app` lifespan.


def credentials_dep(request: Request) -> CredentialCache:
    return request.app.state.credentials  # type: ignore[attr-defined]


def directory_dep(request: Request) -> DirectoryClient:
    return request.app.state.directory  # type: ignore[attr-defined]


def registration_dep(request: Request) -> RegistrationService:
    return request.app.state.registration  # type: ignore[attr-defined]


def activation_dep(request: Request) -> ActivationService:
    return request.app.state.activation  # type: ignore[attr-defined]


def passwords_dep(request: Request) -> PasswordService:
    return request.app.state.passwords  # type: ignore[attr-defined]
