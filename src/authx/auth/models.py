"""
authx.auth.models

Auth domain models.

Responsibilities:
- Define the service `Credential` held by the credential cache.
- Define the per-request `AuthorizationDecision` and the parsed introspection result.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Credential:
    """
    Access credential issued to this service.

    Frozen: a refresh produces a new Credential, the cache swaps the whole value.
    """

    access_token: str
    token_type: str
    expires_at: int
    refresh_token: str

    def __repr__(self) -> str:
        return f"Credential(token_type={self.token_type!r}, expires_at={self.expires_at})"


class DecisionReason(str, enum.Enum):
    granted = "granted"
    missing_credential = "missing credential"
    insufficient_scope = "insufficient scope"
    denied = "denied"


@dataclass(frozen=True, slots=True)
class AuthorizationDecision:
    allowed: bool
    reason: DecisionReason
    scope: str
    subject: str | None = None

    @classmethod
    def deny(cls, reason: DecisionReason, *, scope: str) -> AuthorizationDecision:
        return cls(allowed=False, reason=reason, scope=scope)


@dataclass(frozen=True, slots=True)
class IntrospectionResult:
    active: bool
    scopes: frozenset[str]
    subject: str | None = None
    client_id: str | None = None
