"""
authx.errors

Error taxonomy shared by every layer, plus the upstream classifier.

Responsibilities:
- Define the typed errors callers branch on (authorization vs breakage vs upstream).
- Map httpx transport/status failures to that taxonomy once, at the boundary.
- Re-label upstream failures with a user-facing intent while keeping the detail.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx


class AuthXError(Exception):
    """
    Base error.

    `message` is the user-facing summary; `detail` keeps the upstream/diagnostic text.
    """

    status_code: int = 500

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def with_intent(self, intent: str) -> AuthXError:
        # Same class, new summary; the previous summary becomes the detail if none was set.
        clone = _clone(self)
        clone.message = intent
        clone.detail = self.detail or self.message
        clone.args = (intent,)
        return clone

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class InputError(AuthXError):
    status_code = 400


class Unauthorized(AuthXError):
    status_code = 401


class InvalidToken(AuthXError):
    status_code = 400


class NotFound(AuthXError):
    status_code = 404


class InternalError(AuthXError):
    status_code = 500


class UpstreamError(AuthXError):
    status_code = 502


class UpstreamAuthError(UpstreamError):
    """The issuer rejected a grant, refresh or introspection request."""

    def __init__(self, message: str, *, detail: str | None = None, code: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.code = code


class UpstreamNotFound(UpstreamError):
    status_code = 404


class UpstreamConflict(UpstreamError):
    status_code = 409


class PreconditionFailed(UpstreamConflict):
    status_code = 412


class UpstreamTimeout(AuthXError):
    status_code = 504


def _clone(err: AuthXError) -> AuthXError:
    clone = err.__class__.__new__(err.__class__)
    clone.__dict__.update(err.__dict__)
    clone.__cause__ = err.__cause__
    return clone


def upstream_detail(response: httpx.Response) -> str:
    """
    Best-effort extraction of a human-readable reason from an upstream error body.

    SCIM errors carry `detail`; OAuth errors carry `error_description`/`error`.
    """

    try:
        body: Any = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("detail", "error_description", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return response.text or response.reason_phrase


def classify_http_error(exc: httpx.HTTPError, *, intent: str) -> AuthXError:
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamTimeout(intent, detail=str(exc) or exc.__class__.__name__)
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = upstream_detail(exc.response)
        if status == 404:
            return UpstreamNotFound(intent, detail=detail)
        if status == 409:
            return UpstreamConflict(intent, detail=detail)
        if status == 412:
            return PreconditionFailed(intent, detail=detail)
        return UpstreamError(intent, detail=f"[{status}] {detail}")
    return UpstreamError(intent, detail=str(exc) or exc.__class__.__name__)


# Errors that already speak to the caller; never re-labelled.
_CALLER_FACING = (InputError, Unauthorized, InvalidToken, NotFound)


@contextmanager
def failure_intent(intent: str) -> Iterator[None]:
    try:
        yield
    except _CALLER_FACING:
        raise
    except AuthXError as e:
        raise e.with_intent(intent) from e
    except httpx.HTTPError as e:
        raise classify_http_error(e, intent=intent) from e


# --- Module Notes -----------------------------------------------------------
# Unauthorized and InternalError are siblings so handlers and callers can
# always tell "you may not do this" apart from "something broke".
