"""
authx.auth.deps

FastAPI dependency functions for authorization.

Responsibilities:
- Run the authorization gate on the raw `Authorization` header.
- Offer reusable dependencies for the default scope, the admin scope, or any scope.
"""

from __future__ import annotations

from fastapi import Depends, Request

from authx.auth.gate import AuthorizationGate
from authx.auth.models import AuthorizationDecision


def gate_from_app(request: Request) -> AuthorizationGate:
    # Built once in the `authx.api.app` lifespan.
    return request.app.state.gate  # type: ignore[attr-defined]


def _authorization_header(request: Request) -> str | None:
    # Raw header: the literal "Bearer " prefix is part of the contract.
    return request.headers.get("authorization")


def require_scope(scope: str | None = None):
    """
    Dependency factory: `Depends(require_scope())` checks the gate's default scope,
    `Depends(require_scope("reports"))` an explicit one.
    """

    async def _dep(
        request: Request,
        gate: AuthorizationGate = Depends(gate_from_app),
    ) -> AuthorizationDecision:
        return await gate.authorize(_authorization_header(request), scope)

    return _dep


async def require_admin(
    request: Request,
    gate: AuthorizationGate = Depends(gate_from_app),
) -> AuthorizationDecision:
    settings = request.app.state.settings  # type: ignore[attr-defined]
    return await gate.authorize(_authorization_header(request), settings.openid_admin_scope)
