"""
tests.test_api

HTTP surface driven in-process through httpx.ASGITransport.

Responsibilities:
- Exercise the app lifespan (credential acquisition, wiring) with fake upstreams.
- Check status codes and bodies for the error taxonomy.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
from fastapi import FastAPI

from authx.api.app import create_app
from authx.settings import Settings

from conftest import FakeDirectory, FakeIssuer

USER = {"Authorization": "Bearer user-tok"}
ADMIN = {"Authorization": "Bearer admin-tok"}


@pytest.fixture(autouse=True)
def _tokens(issuer_backend: FakeIssuer) -> None:
    issuer_backend.scopes_by_token["user-tok"] = ["openid", "user"]
    issuer_backend.scopes_by_token["admin-tok"] = ["openid", "user", "admin"]


@asynccontextmanager
async def running(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    # httpx ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def app(settings: Settings, transport: httpx.MockTransport) -> FastAPI:
    return create_app(settings=settings, transport=transport)


@pytest.mark.asyncio
async def test_health_endpoints(app: FastAPI) -> None:
    async with running(app) as client:
        r = await client.get("/healthz", headers={"x-request-id": "req-1"})
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.headers["x-request-id"] == "req-1"

        r = await client.get("/readyz")
        assert r.status_code == 200
        assert r.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_register_and_activate(app: FastAPI, directory_backend: FakeDirectory) -> None:
    async with running(app) as client:
        r = await client.post(
            "/v1/users", json={"user": {"email": "api@example.com", "password": "pw"}}
        )
        assert r.status_code == 201
        body = r.json()
        assert body["success"] is True
        token = body["data"]["activationUrl"].rsplit("/", 1)[1]

        r = await client.post("/v1/users/activate", json={"activationToken": token})
        assert r.status_code == 200
        assert r.json()["data"]["active"] is True

        r = await client.post("/v1/users/activate", json={"activationToken": token})
        assert r.status_code == 400
        assert r.json() == {
            "success": False,
            "error": "invalid activation token",
            "info": {"message": None},
        }


@pytest.mark.asyncio
async def test_register_validation_and_conflict(
    app: FastAPI, directory_backend: FakeDirectory
) -> None:
    directory_backend.add_user("taken@example.com")
    async with running(app) as client:
        r = await client.post("/v1/users", json={})
        assert r.status_code == 400
        assert r.json()["error"] == "invalid request data"

        r = await client.post(
            "/v1/users",
            json={"user": {"email": "x@example.com", "password": "pw"}, "activationUrl": "https://evil.test/"},
        )
        assert r.status_code == 400

        r = await client.post(
            "/v1/users", json={"user": {"email": "taken@example.com", "password": "pw"}}
        )
        assert r.status_code == 409
        assert r.json()["error"] == "unable to register the user"
        assert r.json()["info"]["message"] == "userName already exists"


@pytest.mark.asyncio
async def test_protected_routes_require_bearer_and_scope(
    app: FastAPI, directory_backend: FakeDirectory
) -> None:
    user = directory_backend.add_user("crud@example.com")
    async with running(app) as client:
        r = await client.get("/v1/users")
        assert r.status_code == 401
        assert r.headers["www-authenticate"] == "Bearer"
        assert r.json()["error"] == "missing credential"

        r = await client.get("/v1/users", headers=USER)
        assert r.status_code == 401
        assert r.json()["error"] == "insufficient scope"

        r = await client.get("/v1/users", headers=ADMIN, params={"filter": 'userName eq "crud@example.com"'})
        assert r.status_code == 200
        assert [u["id"] for u in r.json()["data"]["Resources"]] == [user["id"]]

        r = await client.get(f"/v1/users/{user['id']}", headers=USER)
        assert r.status_code == 200
        assert r.json()["data"]["userName"] == "crud@example.com"

        r = await client.get(f"/v1/users/{user['id']}", headers={"Authorization": "Bearer revoked"})
        assert r.status_code == 401
        assert r.json()["error"] == "denied"


@pytest.mark.asyncio
async def test_modify_and_delete(app: FastAPI, directory_backend: FakeDirectory) -> None:
    user = directory_backend.add_user("mod@example.com")
    async with running(app) as client:
        r = await client.patch(
            f"/v1/users/{user['id']}",
            headers=USER,
            json={"user": {"Operations": [{"op": "replace", "path": "displayName", "value": "Mod"}]}},
        )
        assert r.status_code == 200
        assert directory_backend.users[user["id"]]["displayName"] == "Mod"

        r = await client.delete(f"/v1/users/{user['id']}", headers=USER)
        assert r.status_code == 401

        r = await client.delete(f"/v1/users/{user['id']}", headers=ADMIN)
        assert r.status_code == 204
        assert user["id"] not in directory_backend.users

        r = await client.get(f"/v1/users/{user['id']}", headers=USER)
        assert r.status_code == 404
        assert r.json()["error"] == "unable to get user"


@pytest.mark.asyncio
async def test_forgot_and_reset_password(
    settings: Settings, transport: httpx.MockTransport, directory_backend: FakeDirectory
) -> None:
    app = create_app(
        settings=settings.model_copy(update={"notification_webhook_url": "http://notify.test/events"}),
        transport=transport,
    )
    user = directory_backend.add_user("pw@example.com", active=True)
    async with running(app) as client:
        r = await client.post("/v1/users/forgotPassword", json={"userId": "pw@example.com"})
        assert r.status_code == 200
        token = directory_backend.users[user["id"]]["entitlements"][0]["display"]

        r = await client.post(
            "/v1/users/changePassword",
            json={"resetPasswordToken": token, "newPassword": "fresh"},
        )
        assert r.status_code == 200
        assert directory_backend.passwords[user["id"]] == "fresh"

        r = await client.post("/v1/users/forgotPassword", json={"userId": "nobody@example.com"})
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_authenticated_password_change(
    app: FastAPI, directory_backend: FakeDirectory
) -> None:
    alice = directory_backend.add_user("alice", active=True)
    async with running(app) as client:
        r = await client.post(
            f"/v1/users/{alice['id']}/password",
            headers=USER,
            json={"username": "alice", "oldPassword": "nope", "newPassword": "n"},
        )
        assert r.status_code == 401
        assert r.json()["error"] == "invalid credentials"

        r = await client.post(
            f"/v1/users/{alice['id']}/password",
            headers=USER,
            json={"username": "alice", "oldPassword": "s3cret", "newPassword": "n"},
        )
        assert r.status_code == 200


@pytest.mark.asyncio
async def test_uninitialized_credential_is_an_internal_error(
    settings: Settings, transport: httpx.MockTransport
) -> None:
    app = create_app(
        settings=settings.model_copy(update={"scim_password": "wrongpass"}), transport=transport
    )
    async with running(app) as client:
        r = await client.get("/readyz")
        assert r.status_code == 503

        r = await client.get("/v1/users/anything", headers=USER)
        assert r.status_code == 500
        assert r.json()["info"]["message"] == "uninitialized credential"


@pytest.mark.asyncio
async def test_introspection_outage_is_not_unauthorized(
    app: FastAPI, issuer_backend: FakeIssuer
) -> None:
    async with running(app) as client:
        issuer_backend.introspection_failure = lambda: httpx.Response(503, text="maintenance")
        r = await client.get("/v1/users/x", headers=USER)
        assert r.status_code == 500
        assert r.json()["error"] == "something went wrong while authorizing your request"


@pytest.mark.asyncio
async def test_unreadable_token_entry_renders_error_envelope(
    app: FastAPI, directory_backend: FakeDirectory
) -> None:
    token = "a" * 32
    directory_backend.add_user(
        "odd@example.com",
        entitlements=[
            {"type": "activation", "display": token, "value": "false", "created": "yesterday"}
        ],
    )
    async with running(app) as client:
        r = await client.post("/v1/users/activate", json={"activationToken": token})
        assert r.status_code == 500
        assert r.json() == {
            "success": False,
            "error": "unable to activate user",
            "info": {"message": "created='yesterday'"},
        }
