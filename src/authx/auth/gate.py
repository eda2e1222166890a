"""
authx.auth.gate

Bearer-token authorization gate.

Responsibilities:
- Reject requests without a `Bearer` credential before any network call.
- Introspect the token and check the required scope.
- Keep authorization denials (`Unauthorized`) distinct from breakage (`InternalError`).
"""

from __future__ import annotations

from authx.auth.models import AuthorizationDecision, DecisionReason
from authx.auth.openid import OpenIdClient
from authx.errors import (
    AuthXError,
    InternalError,
    Unauthorized,
    UpstreamAuthError,
    UpstreamTimeout,
)
from authx.observability.logging import get_logger

log = get_logger(__name__)

BEARER_PREFIX = "Bearer "
ACCESS_DENIED = "access_denied"


class AuthorizationGate:
    def __init__(self, *, issuer: OpenIdClient, default_scope: str) -> None:
        self._issuer = issuer
        self._default_scope = default_scope

    async def decide(
        self, authorization: str | None, scope: str | None = None
    ) -> AuthorizationDecision:
        """
        Return the decision for one request.

        Raises `UpstreamTimeout` or `InternalError` when introspection itself fails;
        those never turn into a denial.
        """

        required = scope or self._default_scope
        token = _bearer_token(authorization)
        if token is None:
            return AuthorizationDecision.deny(DecisionReason.missing_credential, scope=required)

        try:
            result = await self._issuer.introspect(token)
        except UpstreamAuthError as e:
            if (e.code or "").startswith(ACCESS_DENIED):
                return AuthorizationDecision.deny(DecisionReason.denied, scope=required)
            raise _internal(e) from e
        except UpstreamTimeout:
            raise
        except AuthXError as e:
            raise _internal(e) from e

        if not result.active:
            return AuthorizationDecision.deny(DecisionReason.denied, scope=required)
        if required not in result.scopes:
            return AuthorizationDecision.deny(DecisionReason.insufficient_scope, scope=required)
        return AuthorizationDecision(
            allowed=True,
            reason=DecisionReason.granted,
            scope=required,
            subject=result.subject,
        )

    async def authorize(
        self, authorization: str | None, scope: str | None = None
    ) -> AuthorizationDecision:
        decision = await self.decide(authorization, scope)
        if not decision.allowed:
            log.info("authorization.denied", reason=decision.reason.value, scope=decision.scope)
            raise Unauthorized(decision.reason.value, detail=_explain(decision))
        return decision


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


def _internal(e: AuthXError) -> InternalError:
    return InternalError(
        "something went wrong while authorizing your request",
        detail=e.detail or e.message,
    )


def _explain(decision: AuthorizationDecision) -> str:
    if decision.reason is DecisionReason.missing_credential:
        return "Authorization header with a Bearer token is required"
    if decision.reason is DecisionReason.insufficient_scope:
        return f"access token is invalid for {decision.scope}"
    return "the authorization server denied access"
