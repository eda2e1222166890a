"""
tests.conftest

Shared fixtures: in-memory issuer and SCIM directory served through httpx.MockTransport.

Responsibilities:
- Fake the OpenID issuer (password/refresh grants, introspection).
- Fake a SCIM `/Users` directory with filter evaluation and If-Match versioning.
- Provide wired collaborators (credential cache, directory client, engine, services).
"""

from __future__ import annotations

import asyncio
import copy
import json
import re
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
import pytest_asyncio

from authx.auth.credentials import CredentialCache
from authx.auth.openid import OpenIdClient
from authx.directory.client import DirectoryClient
from authx.events import EventEmitter
from authx.services.activation import ActivationService
from authx.services.passwords import PasswordService
from authx.services.registration import RegistrationService
from authx.settings import Settings
from authx.workflow.engine import WorkflowTokenEngine
from authx.workflow.repository import DirectoryWorkflowTokenRepository

ISSUER_HOST = "issuer.test"
DIRECTORY_HOST = "scim.test"
SERVICE_USER = ("svc", "svc-pass")
NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _json(status: int, body: Any) -> httpx.Response:
    return httpx.Response(status, json=body)


class FakeIssuer:
    """
    Password accounts live in `accounts`; introspection answers come from `scopes_by_token`.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.accounts: dict[str, str] = {SERVICE_USER[0]: SERVICE_USER[1], "alice": "s3cret"}
        self.expires_in = 300
        self.refresh_tokens: set[str] = set()
        self.scopes_by_token: dict[str, list[str]] = {}
        self.denied_tokens: set[str] = set()
        self.grant_calls = 0
        self.refresh_calls = 0
        self.introspection_calls = 0
        self.refresh_delay = 0.0
        self.introspection_failure: Callable[[], httpx.Response] | None = None
        self._n = 0

    def _issue(self) -> httpx.Response:
        self._n += 1
        refresh = f"rt-{self._n}"
        self.refresh_tokens.add(refresh)
        return _json(
            200,
            {
                "access_token": f"at-{self._n}",
                "token_type": "bearer",
                "expires_in": self.expires_in,
                "refresh_token": refresh,
            },
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode()))
        if request.url.path == "/token":
            if form.get("grant_type") == "password":
                self.grant_calls += 1
                if self.accounts.get(form.get("username", "")) != form.get("password"):
                    return _json(400, {"error": "invalid_grant", "error_description": "bad credentials"})
                return self._issue()
            if form.get("grant_type") == "refresh_token":
                self.refresh_calls += 1
                if self.refresh_delay:
                    await asyncio.sleep(self.refresh_delay)
                if form.get("refresh_token") not in self.refresh_tokens:
                    return _json(400, {"error": "invalid_grant", "error_description": "expired refresh token"})
                return self._issue()
            return _json(400, {"error": "unsupported_grant_type"})

        if request.url.path == "/introspect":
            self.introspection_calls += 1
            if self.introspection_failure is not None:
                return self.introspection_failure()
            token = form.get("token", "")
            if token in self.denied_tokens:
                return _json(403, {"error": "access_denied", "error_description": "client blocked"})
            if token not in self.scopes_by_token:
                return _json(200, {"active": False})
            return _json(200, {"active": True, "scopes": self.scopes_by_token[token], "sub": "caller"})

        return _json(404, {"error": "not_found"})


_CLAUSE = re.compile(r'^\s*([\w.]+)\s+eq\s+"((?:[^"\\]|\\.)*)"\s*$')


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FakeDirectory:
    """
    SCIM `/Users` store. Multi-valued filter clauses match ANY element, like real
    SCIM servers, so clauses may be satisfied by different entitlements.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.passwords: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.before_patch: Callable[[str], None] | None = None
        self.timeout_paths: set[str] = set()
        self._version = 0

    def _bump(self, user: dict[str, Any]) -> None:
        self._version += 1
        user["meta"] = {"resourceType": "User", "version": f'W/"{self._version}"'}

    def add_user(self, user_name: str, *, active: bool = False, **fields: Any) -> dict[str, Any]:
        user_id = uuid.uuid4().hex
        user = {
            "id": user_id,
            "userName": user_name,
            "emails": [{"value": user_name, "primary": True}],
            "active": active,
            "entitlements": [],
            **fields,
        }
        self._bump(user)
        self.users[user_id] = user
        return user

    def matches(self, user: dict[str, Any], filter: str) -> bool:
        for clause in filter.split(" and "):
            m = _CLAUSE.match(clause)
            assert m, f"unsupported filter clause: {clause!r}"
            attr, value = m.group(1), re.sub(r"\\(.)", r"\1", m.group(2))
            if "." in attr:
                parent, child = attr.split(".", 1)
                if not any(_as_text(e.get(child)) == value for e in user.get(parent) or []):
                    return False
            elif _as_text(user.get(attr)) != value:
                return False
        return True

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Yield so concurrent callers interleave at every directory round trip.
        await asyncio.sleep(0)
        if request.url.path in self.timeout_paths:
            raise httpx.ReadTimeout("directory timed out", request=request)

        path = request.url.path.removeprefix("/scim/v2")
        if path == "/Users" and request.method == "GET":
            flt = request.url.params.get("filter")
            found = [copy.deepcopy(u) for u in self.users.values() if not flt or self.matches(u, flt)]
            return _json(200, {"totalResults": len(found), "Resources": found})
        if path == "/Users" and request.method == "POST":
            body = json.loads(request.content)
            if any(u["userName"] == body["userName"] for u in self.users.values()):
                return _json(409, {"status": "409", "detail": "userName already exists"})
            password = body.pop("password", None)
            user = self.add_user(body.pop("userName"), **{k: v for k, v in body.items() if k != "schemas"})
            if password is not None:
                self.passwords[user["id"]] = password
            return _json(201, copy.deepcopy(user))

        user_id = path.removeprefix("/Users/")
        user = self.users.get(user_id)
        if user is None:
            return _json(404, {"status": "404", "detail": f"user {user_id} not found"})
        if request.method == "GET":
            return _json(200, copy.deepcopy(user))
        if request.method == "DELETE":
            del self.users[user_id]
            return httpx.Response(204)
        if request.method == "PATCH":
            if self.before_patch is not None:
                self.before_patch(user_id)
            expected = request.headers.get("if-match")
            if expected is not None and expected != user["meta"]["version"]:
                return _json(412, {"status": "412", "detail": "version mismatch"})
            for op in json.loads(request.content)["Operations"]:
                if op["path"] == "password":
                    self.passwords[user_id] = op["value"]
                elif op["op"] == "remove":
                    user.pop(op["path"], None)
                else:
                    user[op["path"]] = copy.deepcopy(op["value"])
            self._bump(user)
            return _json(200, copy.deepcopy(user))
        return _json(405, {"detail": "method not allowed"})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer_backend(clock: FakeClock) -> FakeIssuer:
    return FakeIssuer(clock)


@pytest.fixture
def directory_backend() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def transport(issuer_backend: FakeIssuer, directory_backend: FakeDirectory) -> httpx.MockTransport:
    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == ISSUER_HOST:
            return await issuer_backend.handle(request)
        if request.url.host == DIRECTORY_HOST:
            return await directory_backend.handle(request)
        return _json(200, {"received": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        env="test",
        openid_token_endpoint=f"http://{ISSUER_HOST}/token",
        openid_introspection_endpoint=f"http://{ISSUER_HOST}/introspect",
        scim_base_url=f"http://{DIRECTORY_HOST}/scim/v2",
        scim_username=SERVICE_USER[0],
        scim_password=SERVICE_USER[1],
        activation_urls=["https://app.test/activate/", "https://admin.test/activate/"],
        password_reset_urls=["https://app.test/reset/"],
    )


@pytest_asyncio.fixture
async def issuer_http(transport: httpx.MockTransport) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=transport) as http:
        yield http


@pytest_asyncio.fixture
async def directory_http(
    settings: Settings, transport: httpx.MockTransport
) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(base_url=settings.scim_base_url, transport=transport) as http:
        yield http


@pytest.fixture
def openid(settings: Settings, issuer_http: httpx.AsyncClient, clock: FakeClock) -> OpenIdClient:
    return OpenIdClient(settings=settings, http=issuer_http, clock=clock)


@pytest.fixture
def credentials(openid: OpenIdClient, clock: FakeClock) -> CredentialCache:
    return CredentialCache(issuer=openid, clock=clock)


@pytest.fixture
def directory(
    settings: Settings, directory_http: httpx.AsyncClient, credentials: CredentialCache
) -> DirectoryClient:
    return DirectoryClient(settings=settings, http=directory_http, credentials=credentials)


@pytest_asyncio.fixture
async def acquired(credentials: CredentialCache) -> CredentialCache:
    await credentials.acquire(*SERVICE_USER)
    return credentials


@pytest.fixture
def engine(directory: DirectoryClient, clock: FakeClock) -> WorkflowTokenEngine:
    return WorkflowTokenEngine(
        repository=DirectoryWorkflowTokenRepository(directory=directory), clock=clock
    )


@pytest.fixture
def emitted() -> list[tuple[str, dict[str, Any]]]:
    return []


@pytest.fixture
def events(emitted: list[tuple[str, dict[str, Any]]]) -> EventEmitter:
    emitter = EventEmitter()

    async def record(event: str, payload: dict[str, Any]) -> None:
        emitted.append((event, payload))

    emitter.on("user-signup", record)
    emitter.on("user-password-reset", record)
    return emitter


@pytest.fixture
def registration(settings, directory, engine, events) -> RegistrationService:
    return RegistrationService(settings=settings, directory=directory, engine=engine, events=events)


@pytest.fixture
def activation(settings, directory, engine, events) -> ActivationService:
    return ActivationService(settings=settings, directory=directory, engine=engine, events=events)


@pytest.fixture
def passwords(settings, directory, engine, events, openid) -> PasswordService:
    return PasswordService(
        settings=settings, directory=directory, engine=engine, events=events, issuer=openid
    )
