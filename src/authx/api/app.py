"""
authx.api.app

FastAPI app factory for the AuthX service.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Construct shared collaborators once (HTTP clients, credential cache, gate,
  directory client, workflow engine, services) and stash them on app.state.
- Acquire the service credential at startup and close clients on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from authx import __version__
from authx.api.errors import register_error_handlers
from authx.api.routers.accounts import router as accounts_router
from authx.api.routers.health import router as health_router
from authx.api.routers.users import router as users_router
from authx.auth.credentials import CredentialCache
from authx.auth.gate import AuthorizationGate
from authx.auth.openid import OpenIdClient
from authx.directory.client import DirectoryClient
from authx.errors import AuthXError
from authx.events import EventEmitter, WebhookNotifier
from authx.observability.logging import configure_logging, get_logger
from authx.observability.middleware import RequestContextMiddleware
from authx.services.activation import ActivationService
from authx.services.passwords import PasswordService
from authx.services.registration import RegistrationService
from authx.settings import Settings
from authx.workflow.engine import WorkflowTokenEngine
from authx.workflow.repository import DirectoryWorkflowTokenRepository

log = get_logger(__name__)


def _wire(
    app: FastAPI,
    *,
    settings: Settings,
    issuer_http: httpx.AsyncClient,
    directory_http: httpx.AsyncClient,
) -> None:
    # Single composition root: each collaborator is built once and injected by reference.
    issuer = OpenIdClient(settings=settings, http=issuer_http)
    credentials = CredentialCache(
        issuer=issuer, skew_seconds=settings.credential_refresh_skew_seconds
    )
    directory = DirectoryClient(settings=settings, http=directory_http, credentials=credentials)
    engine = WorkflowTokenEngine(
        repository=DirectoryWorkflowTokenRepository(directory=directory),
        ttl_seconds=settings.workflow_token_ttl_seconds,
    )
    events = EventEmitter()
    if settings.notification_webhook_url:
        WebhookNotifier(
            url=settings.notification_webhook_url,
            http=issuer_http,
            timeout=settings.http_timeout,
        ).subscribe(events)

    app.state.settings = settings
    app.state.issuer = issuer
    app.state.credentials = credentials
    app.state.gate = AuthorizationGate(issuer=issuer, default_scope=settings.openid_default_scope)
    app.state.directory = directory
    app.state.events = events
    app.state.registration = RegistrationService(
        settings=settings, directory=directory, engine=engine, events=events
    )
    app.state.activation = ActivationService(
        settings=settings, directory=directory, engine=engine, events=events
    )
    app.state.passwords = PasswordService(
        settings=settings, directory=directory, engine=engine, events=events, issuer=issuer
    )


def create_app(
    *,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    `transport` replaces the network for every outbound client (tests use
    `httpx.MockTransport`).
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        async with (
            httpx.AsyncClient(transport=transport, timeout=settings.http_timeout) as issuer_http,
            httpx.AsyncClient(
                base_url=settings.scim_base_url,
                transport=transport,
                timeout=settings.directory_timeout,
            ) as directory_http,
        ):
            _wire(app, settings=settings, issuer_http=issuer_http, directory_http=directory_http)
            try:
                await app.state.credentials.acquire(settings.scim_username, settings.scim_password)
            except AuthXError as e:
                # Keep serving: /readyz reports not-ready and directory calls fail with
                # InternalError until an operator fixes the directory credentials.
                log.error("startup.credential_unavailable", error=str(e))
            try:
                yield
            finally:
                await app.state.events.drain()
        log.info("shutdown")

    app = FastAPI(
        title="AuthX",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(accounts_router)
    app.include_router(users_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Routers hold no state; they resolve collaborators from app.state via
# `authx.api.deps` and `authx.auth.deps`.
