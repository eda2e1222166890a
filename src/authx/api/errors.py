"""
authx.api.errors

Exception handlers translating the error taxonomy into HTTP responses.

Responsibilities:
- Render `{"success": false, "error": ..., "info": {"message": ...}}` bodies.
- Challenge with `WWW-Authenticate: Bearer` on 401.
- Report request validation failures as 400 input errors.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from authx.errors import AuthXError, InputError, InternalError, Unauthorized, UpstreamError, UpstreamTimeout
from authx.observability.logging import get_logger

log = get_logger(__name__)


def error_body(err: AuthXError) -> dict[str, object]:
    return {"success": False, "error": err.message, "info": {"message": err.detail}}


async def handle_authx_error(_: Request, err: AuthXError) -> JSONResponse:
    if isinstance(err, (UpstreamError, UpstreamTimeout, InternalError)):
        log.error(
            "api.request_failed",
            error=err.__class__.__name__,
            message=err.message,
            detail=err.detail,
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(err, Unauthorized) else None
    return JSONResponse(status_code=err.status_code, content=error_body(err), headers=headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) for e in exc.errors())
    return await handle_authx_error(
        request, InputError("invalid request data", detail=f"invalid or missing: {fields}")
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthXError, handle_authx_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
