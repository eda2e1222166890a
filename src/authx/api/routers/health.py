"""
authx.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`): ready once the service credential is held.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from authx.api.deps import credentials_dep
from authx.auth.credentials import CredentialCache

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(credentials: CredentialCache = Depends(credentials_dep)) -> JSONResponse:
    # Without a credential every directory call fails; keep the instance out of rotation.
    if not credentials.initialized:
        return JSONResponse(
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready", "reason": "uninitialized credential"},
        )
    return JSONResponse(content={"status": "ready"})
