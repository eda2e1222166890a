"""
authx.workflow.repository

Workflow token storage on top of the user's `entitlements` attribute.

Responsibilities:
- Append a new pending entry (retiring older pending entries of the same kind).
- Find users holding a pending entry for a (kind, token) pair.
- Consume an entry and apply the caller's effect in a single conditional patch.

Callers never touch the raw entitlement list; this module is the only place that does.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from authx.directory.client import DirectoryClient
from authx.directory.scim import PatchOperation, User, all_of, eq, replace, resources, version
from authx.errors import InvalidToken, PreconditionFailed
from authx.observability.logging import get_logger
from authx.workflow.locks import KeyedLock
from authx.workflow.tokens import WorkflowTokenEntry, WorkflowTokenKind

log = get_logger(__name__)

EntryCheck = Callable[[WorkflowTokenEntry], bool]


class WorkflowTokenRepository(Protocol):
    async def append(self, user_id: str, entry: WorkflowTokenEntry) -> User: ...

    async def find_pending(self, kind: WorkflowTokenKind, token: str) -> list[User]: ...

    async def consume(
        self,
        user_id: str,
        kind: WorkflowTokenKind,
        token: str,
        effect: Sequence[PatchOperation],
        *,
        usable: EntryCheck | None = None,
    ) -> User: ...


def pending_entry(user: User, kind: WorkflowTokenKind, token: str) -> WorkflowTokenEntry | None:
    """The unconsumed entry of `user` matching kind and token, if any."""
    for raw in user.get("entitlements") or []:
        entry = WorkflowTokenEntry.from_entitlement(raw)
        if entry is not None and not entry.consumed and entry.matches(kind, token):
            return entry
    return None


def pending_filter(kind: WorkflowTokenKind, token: str) -> str:
    return all_of(
        [
            eq("entitlements.type", kind.value),
            eq("entitlements.display", token),
            eq("entitlements.value", "false"),
        ]
    )


class DirectoryWorkflowTokenRepository:
    """
    Read-modify-write cycles on a user's entitlements run under a per-user lock,
    and the patch carries `If-Match` whenever the directory reports a version.
    """

    def __init__(self, *, directory: DirectoryClient) -> None:
        self._directory = directory
        self._locks = KeyedLock()

    async def append(self, user_id: str, entry: WorkflowTokenEntry) -> User:
        async with self._locks.hold(user_id):
            user = await self._directory.get_user(user_id)
            entitlements: list[dict[str, Any]] = []
            retired = 0
            for raw in user.get("entitlements") or []:
                existing = WorkflowTokenEntry.from_entitlement(raw)
                if existing is not None and existing.kind is entry.kind and not existing.consumed:
                    raw = {**raw, "value": "true"}
                    retired += 1
                entitlements.append(raw)
            entitlements.append(entry.to_entitlement())

            updated = await self._directory.modify_user(
                user_id,
                [replace("entitlements", entitlements)],
                if_match=version(user),
            )
        if retired:
            log.info("workflow_token.retired", user_id=user_id, kind=entry.kind.value, count=retired)
        return updated or user

    async def find_pending(self, kind: WorkflowTokenKind, token: str) -> list[User]:
        listing = await self._directory.list_users(pending_filter(kind, token))
        # The directory matches each clause against any entitlement; require one entry
        # to satisfy all three.
        return [u for u in resources(listing) if pending_entry(u, kind, token) is not None]

    async def consume(
        self,
        user_id: str,
        kind: WorkflowTokenKind,
        token: str,
        effect: Sequence[PatchOperation],
        *,
        usable: EntryCheck | None = None,
    ) -> User:
        async with self._locks.hold(user_id):
            user = await self._directory.get_user(user_id)
            entitlements = list(user.get("entitlements") or [])
            index = _pending_index(entitlements, kind, token, usable)
            if index is None:
                raise InvalidToken(f"invalid {kind.value} token")
            entitlements[index] = {**entitlements[index], "value": "true"}

            try:
                updated = await self._directory.modify_user(
                    user_id,
                    [replace("entitlements", entitlements), *effect],
                    if_match=version(user),
                )
            except PreconditionFailed as e:
                # The record changed between our read and the write.
                raise InvalidToken(f"invalid {kind.value} token", detail=e.detail) from e
            if updated is None:
                updated = await self._directory.get_user(user_id)
        return updated


def _pending_index(
    entitlements: list[dict[str, Any]],
    kind: WorkflowTokenKind,
    token: str,
    usable: EntryCheck | None,
) -> int | None:
    for i, raw in enumerate(entitlements):
        entry = WorkflowTokenEntry.from_entitlement(raw)
        if entry is None or entry.consumed or not entry.matches(kind, token):
            continue
        if usable is not None and not usable(entry):
            continue
        return i
    return None


# --- Module Notes -----------------------------------------------------------
# Consumed entries are never removed; the entitlement list doubles as an audit trail.
